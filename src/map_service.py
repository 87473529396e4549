from flask import abort

from qwc_services_core.runtime_config import RuntimeConfig
from authorization import AuthorizationService, authorized
from config_store import ConfigStore
from layer_tree import LayerTreeBuilder
from proxy_links import ProxyLinkBuilder
from visibility import (
    LevelTree, ServiceLayerTree, candidate_start_layers,
    filter_service_visibility, resolve_visibility, sorted_start_levels
)


def map_layers(store, application, context, proxy_links, logger):
    """Compute layer trees, visible application layers and services of an
    application for an authorization context.

    Entities are fetched from the store up front in batched calls. Returns
    None if the root level of the application is not found.

    :param ConfigStore store: Map configuration
    :param Application application: Application
    :param set context: Reader roles of the requester
    :param ProxyLinkBuilder proxy_links: Proxy link builder
    :param Logger logger: Application logger
    """
    levels = store.level_forest(application.root_level_id)
    if not levels:
        logger.warning(
            "Root level %s of app %s not found" % (
                application.root_level_id, application.id
            )
        )
        return None
    level_tree = LevelTree(levels)

    start_levels = sorted_start_levels(store.start_levels(application))
    start_layers = [
        start_layer for start_layer in store.start_layers(application)
        if not start_layer.removed
    ]
    app_layers = {
        app_layer.id: app_layer for app_layer in store.app_layers(
            {start_layer.app_layer_id for start_layer in start_layers}
        )
    }

    # visible levels and application layers
    candidates = candidate_start_layers(
        start_layers, app_layers, context, logger
    )
    visible_levels, layer_map = resolve_visibility(
        level_tree, start_levels, candidates, context, logger
    )

    # visibility of backing service layers
    service_ids = {
        app_layers[app_layer_id].service_id for app_layer_id in layer_map
    }
    services = {service.id: service for service in store.services(service_ids)}
    service_layer_tree = ServiceLayerTree(store.service_layers(service_ids))
    layer_map = filter_service_visibility(
        layer_map, app_layers, service_layer_tree, services, context,
        application, logger
    )

    builder = LayerTreeBuilder(
        application, level_tree, app_layers, service_layer_tree, services,
        proxy_links, logger
    )
    return builder.build(start_levels, visible_levels, layer_map)


class MapService:
    """MapService class

    Provide the map configuration of viewer applications, filtered by the
    reader roles of the requesting user.
    """

    def __init__(self, tenant, logger):
        """Constructor

        :param str tenant: Tenant ID
        :param Logger logger: Application logger
        """
        self.tenant = tenant
        self.logger = logger

        config_handler = RuntimeConfig("map", logger)
        config = config_handler.tenant_config(tenant)

        # base URL of the geo service proxy
        # (default: URL of this service)
        self.proxy_base_url = config.get('proxy_base_url')
        self.basic_auth_login_url = config.get('basic_auth_login_url')

        self.store = ConfigStore(config.resources(), logger)
        self.authorization = AuthorizationService(tenant, logger)

    def map(self, identity, app_name, version, host_url, script_root):
        """Return map configuration of an application.

        :param str identity: User identity
        :param str app_name: Application name
        :param str version: Optional application version
        :param str host_url: host url
        :param str script_root: Request root path
        """
        application = self.store.application(app_name, version)
        if application is None:
            self.logger.info(
                "Application %s (version %s) not found" % (app_name, version)
            )
            abort(404, "Application not found")

        context = self.authorization.roles(identity)
        if not authorized(application.readers, context):
            self.logger.info(
                "Access to application %s denied for identity %s" % (
                    app_name, identity
                )
            )
            abort(401, "Unauthorized")

        proxy_base_url = self.proxy_base_url
        if not proxy_base_url:
            proxy_base_url = host_url.rstrip('/') + script_root
        proxy_links = ProxyLinkBuilder(proxy_base_url, self.logger)

        layers = map_layers(
            self.store, application, context, proxy_links, self.logger
        )
        if layers is None:
            abort(404, "Application root level not found")

        max_extent = None
        if application.max_extent:
            max_extent = application.max_extent.to_json()
        initial_extent = max_extent
        if application.initial_extent:
            initial_extent = application.initial_extent.to_json()

        crs = None
        if application.crs:
            crs = {'code': application.crs}

        response = {
            'initialExtent': initial_extent,
            'maxExtent': max_extent,
            'crs': crs
        }
        response.update(layers)
        return response
