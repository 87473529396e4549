from urllib.parse import urlsplit, urlunsplit


# Protocols of geo services which can be routed through the proxy
WMS_PROTOCOL = 'wms'
TILED_PROTOCOL = 'tiled'
WMTS_TILING_PROTOCOL = 'WMTS'


def proxy_protocol(service):
    """Return the proxy protocol tag for a geo service, or None if the
    proxy does not support its protocol.

    :param GeoService service: Geo service
    """
    if service.protocol == WMS_PROTOCOL:
        return 'wms'
    if (
        service.protocol == TILED_PROTOCOL
        and (service.tiling_protocol or '').upper() == WMTS_TILING_PROTOCOL
    ):
        return 'wmts'
    return None


def rewrite_legend_url(legend_url, service_url, proxy_url):
    """Point a legend URL at the proxy if it refers to the same host and
    path as the service URL, keeping the legend query parameters.

    :param str legend_url: Configured legend image URL
    :param str service_url: Geo service URL
    :param str proxy_url: Proxy URL of the application layer
    """
    if not legend_url or not proxy_url:
        return legend_url

    legend = urlsplit(legend_url)
    service = urlsplit(service_url)
    if legend.hostname != service.hostname or legend.path != service.path:
        return legend_url

    proxy = urlsplit(proxy_url)
    query = "&".join(filter(bool, [proxy.query, legend.query]))
    return urlunsplit(
        (proxy.scheme, proxy.netloc, proxy.path, query, '')
    )


class ProxyLinkBuilder:
    """ProxyLinkBuilder class

    Build links to the geo service proxy for application layers:

        <base_url>/app/<app id>/layer/<app layer id>/proxy/<protocol>
    """

    def __init__(self, base_url, logger):
        """Constructor

        :param str base_url: Base URL of the proxy routes
        :param Logger logger: Application logger
        """
        self.base_url = base_url.rstrip('/')
        self.logger = logger

    def build(self, application_id, app_layer_id, protocol_tag):
        return "%s/app/%s/layer/%s/proxy/%s" % (
            self.base_url, application_id, app_layer_id, protocol_tag
        )

    def proxy_url(self, application, app_layer, service):
        """Return the proxy URL of an application layer, or None if its
        service is not proxied.

        :param Application application: Application
        :param AppLayer app_layer: Application layer
        :param GeoService service: Geo service of the application layer
        """
        if not service.details.use_proxy:
            return None
        protocol_tag = proxy_protocol(service)
        if protocol_tag is None:
            self.logger.warning(
                "Can't proxy service %s with protocol %s, using service URL" %
                (service.id, service.protocol)
            )
            return None
        return self.build(application.id, app_layer.id, protocol_tag)
