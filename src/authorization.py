from qwc_services_core.permissions_reader import PermissionsReader


def authorized(readers, context):
    """Return whether a reader-role requirement is satisfied.

    :param set readers: Required reader roles, empty for public
    :param set context: Reader roles held by the requester
    """
    if not readers:
        return True
    return any(reader in context for reader in readers)


def is_proxied_secured_service_in_public_application(application, service):
    """Return whether a layer of this service must be hidden because a
    secured service would be proxied to everyone through a public
    application.

    :param Application application: Application
    :param GeoService service: Geo service of the layer
    """
    return (
        service.details.use_proxy
        and bool(service.authentication)
        and application.public
    )


class AuthorizationService:
    """AuthorizationService class

    Resolve the reader roles of a user identity from the permissions of
    its roles. Reader roles are granted by `map_roles` resources, e.g.

        "permissions": {"map_roles": [{"name": "ADMIN"}]}
    """

    def __init__(self, tenant, logger):
        """Constructor

        :param str tenant: Tenant ID
        :param Logger logger: Application logger
        """
        self.logger = logger
        self.permissions_handler = PermissionsReader(tenant, logger)

    def roles(self, identity):
        """Return the authorization context for an identity.

        :param str identity: User identity
        """
        permissions = self.permissions_handler.resource_permissions(
            'map_roles', identity
        )
        roles = frozenset(entry['name'] for entry in permissions)
        self.logger.debug(
            "Reader roles for identity %s: %s" % (identity, sorted(roles))
        )
        return roles
