from collections import deque

from proxy_links import rewrite_legend_url


FOREGROUND_ROOT_ID = 'root-foreground'
BACKGROUND_ROOT_ID = 'root-background'


def level_node_id(level_id):
    return "lvl_%s" % level_id


def layer_node_id(app_layer_id):
    return "lyr_%s" % app_layer_id


def tree_node(node_id, name, root=False, description=None, app_layer_id=None):
    """Create a layer tree node.

    :param str node_id: Node ID, unique in the tree
    :param str name: Display name
    :param bool root: Whether this is a synthetic root node
    :param str description: Optional description
    :param int app_layer_id: Application layer ID for layer nodes
    """
    node = {
        'id': node_id,
        'name': name,
        'root': root,
        'childrenIds': []
    }
    if app_layer_id is not None:
        node['appLayerId'] = app_layer_id
    if description is not None:
        node['description'] = description
    return node


class LayerTreeBuilder:
    """LayerTreeBuilder class

    Build the foreground and background layer trees of an application,
    together with the flat lists of visible application layers and of the
    geo services they use.

    The traversal order (start levels by selection index, then breadth
    first, then application layers in level order) is kept in all outputs.
    """

    def __init__(self, application, level_tree, app_layers,
                 service_layer_tree, services, proxy_links, logger):
        """Constructor

        :param Application application: Application
        :param LevelTree level_tree: Level forest
        :param dict app_layers: Application layers by ID
        :param ServiceLayerTree service_layer_tree: Service layer hierarchies
        :param dict services: Geo services by ID
        :param ProxyLinkBuilder proxy_links: Proxy link builder
        :param Logger logger: Application logger
        """
        self.application = application
        self.level_tree = level_tree
        self.app_layers = app_layers
        self.service_layer_tree = service_layer_tree
        self.services = services
        self.proxy_links = proxy_links
        self.logger = logger

    def build(self, start_levels, visible_levels, layer_map):
        """Return layer trees and visible layers and services.

        :param list(StartLevel) start_levels: Sorted start levels
        :param set visible_levels: Visible level IDs
        :param dict layer_map: Visible start layers by application layer ID
        """
        foreground_root = tree_node(FOREGROUND_ROOT_ID, "Foreground", True)
        background_root = tree_node(BACKGROUND_ROOT_ID, "Background", True)
        result = {
            'layerTreeNodes': [foreground_root],
            'baseLayerTreeNodes': [background_root],
            'appLayers': [],
            'services': []
        }
        # level nodes by level ID
        level_nodes = {}
        # service IDs already added to services
        service_ids = set()
        # app layer IDs already added to appLayers
        app_layer_ids = set()

        for start_level in start_levels:
            if self.level_tree.is_background(start_level.level_id):
                nodes = result['baseLayerTreeNodes']
                chosen_root = background_root
            else:
                nodes = result['layerTreeNodes']
                chosen_root = foreground_root

            queue = deque([start_level.level_id])
            while queue:
                level = self.level_tree.get(queue.popleft())
                if (
                    level is None or level.id in level_nodes
                    or level.id not in visible_levels
                ):
                    continue

                node = tree_node(
                    level_node_id(level.id), level.name,
                    description=level.info
                )
                nodes.append(node)
                level_nodes[level.id] = node

                if level.id == start_level.level_id:
                    parent_node = chosen_root
                else:
                    parent_node = level_nodes.get(level.parent_id, chosen_root)
                parent_node['childrenIds'].append(node['id'])

                queue.extend(self.level_tree.children_of(level.id))

                for app_layer_id in level.layer_ids:
                    start_layer = layer_map.get(app_layer_id)
                    if start_layer is None:
                        continue
                    if app_layer_id in app_layer_ids:
                        self.logger.warning(
                            "Application layer %s is used in more than one "
                            "level, showing it only once" % app_layer_id
                        )
                        continue
                    app_layer_ids.add(app_layer_id)

                    layer_node, app_layer, service = self.add_app_layer(
                        result, start_layer
                    )
                    nodes.append(layer_node)
                    node['childrenIds'].append(layer_node['id'])

                    if service.id not in service_ids:
                        service_ids.add(service.id)
                        result['services'].append(
                            self.service_summary(service, app_layer)
                        )

        return result

    def add_app_layer(self, result, start_layer):
        """Append the summary of a visible application layer and return its
        tree node.

        :param obj result: Layer tree result
        :param StartLayer start_layer: Visible start layer
        """
        app_layer = self.app_layers[start_layer.app_layer_id]
        service = self.services[app_layer.service_id]
        service_layer = self.service_layer_tree.find(
            app_layer.service_id, app_layer.layer_name
        )
        title = self.title(app_layer, service_layer)
        proxy_url = self.proxy_links.proxy_url(
            self.application, app_layer, service
        )

        opacity = 100
        if app_layer.details.transparency is not None:
            opacity = 100 - app_layer.details.transparency

        hidpi_mode = service_layer.details.hidpi_mode
        result['appLayers'].append({
            'id': app_layer.id,
            'layerName': service_layer.name,
            'title': title,
            'serviceId': service.id,
            'url': proxy_url,
            'visible': start_layer.checked,
            'opacity': opacity,
            'minScale': service_layer.min_scale,
            'maxScale': service_layer.max_scale,
            'legendImageUrl': rewrite_legend_url(
                service_layer.legend_image_url, service.url, proxy_url
            ),
            'hiDpiMode': hidpi_mode.value if hidpi_mode else None,
            'hiDpiSubstituteLayer':
                service_layer.details.hidpi_substitute_layer,
            'hasAttributes': len(app_layer.attributes) > 0
        })

        layer_node = tree_node(
            layer_node_id(app_layer.id), title,
            description=app_layer.details.context,
            app_layer_id=app_layer.id
        )
        return layer_node, app_layer, service

    def title(self, app_layer, service_layer):
        """Return the display title of an application layer.

        :param AppLayer app_layer: Application layer
        :param ServiceLayer service_layer: Backing service layer
        """
        if app_layer.details.title_alias:
            return app_layer.details.title_alias
        if service_layer is not None and service_layer.display_name:
            return service_layer.display_name
        return app_layer.layer_name

    def service_summary(self, service, app_layer):
        """Return the geo service summary, with the service URL replaced
        by the proxy URL of the first application layer using it.

        :param GeoService service: Geo service
        :param AppLayer app_layer: First application layer of the service
        """
        proxy_url = self.proxy_links.proxy_url(
            self.application, app_layer, service
        )
        summary = {
            'id': service.id,
            'name': service.name,
            'protocol': service.protocol,
            'url': proxy_url or service.url,
            'serverType': service.details.server_type.value,
            'tilingDisabled': service.details.tiling_disabled,
            'tilingGutter': service.details.tiling_gutter
        }
        if service.tiling_protocol is not None:
            summary['tilingProtocol'] = service.tiling_protocol
        return summary
