from collections import deque

from authorization import (
    authorized, is_proxied_secured_service_in_public_application
)


# Visibility of levels and application layers for an authorization context.
#
# Two independent hierarchies are checked: the application side level tree
# (LevelTree) and the service side layer tree of each geo service
# (ServiceLayerTree). Anything not visible is left out of the results,
# nothing here raises for missing or unauthorized entities.


class LevelTree:
    """Level forest of an application, indexed by level ID."""

    def __init__(self, levels):
        """Constructor

        :param list(Level) levels: All levels below the application root
        """
        self.levels = {}
        self.children = {}
        for level in levels:
            self.levels[level.id] = level
        for level in levels:
            if level.parent_id in self.levels:
                self.children.setdefault(level.parent_id, []).append(level.id)

    def get(self, level_id):
        return self.levels.get(level_id)

    def children_of(self, level_id):
        return self.children.get(level_id, [])

    def ancestors(self, level_id):
        """Yield the level and its ancestors, nearest first.

        :param int level_id: Level ID
        """
        seen = set()
        level = self.levels.get(level_id)
        while level is not None and level.id not in seen:
            seen.add(level.id)
            yield level
            level = self.levels.get(level.parent_id)

    def is_background(self, level_id):
        return any(level.background for level in self.ancestors(level_id))


class ServiceLayerTree:
    """Layer hierarchies of a set of geo services."""

    def __init__(self, service_layers):
        """Constructor

        :param list(ServiceLayer) service_layers: Layers of the services
        """
        self.layers = {}
        # named layers only, group layers may have no name
        self.layers_by_name = {}
        for layer in service_layers:
            self.layers[(layer.service_id, layer.id)] = layer
            if layer.name is not None:
                self.layers_by_name.setdefault(
                    (layer.service_id, layer.name), layer
                )

    def find(self, service_id, layer_name):
        return self.layers_by_name.get((service_id, layer_name))

    def chain(self, layer):
        """Yield the layer and its parent layers up to the service root.

        :param ServiceLayer layer: Service layer
        """
        seen = set()
        while layer is not None and layer.id not in seen:
            seen.add(layer.id)
            yield layer
            if layer.parent_id is None:
                break
            layer = self.layers.get((layer.service_id, layer.parent_id))


def sorted_start_levels(start_levels):
    """Return start levels which are not removed and have a selection
    index, in ascending selection index order.

    :param list(StartLevel) start_levels: Start levels of the application
    """
    return sorted(
        [
            start_level for start_level in start_levels
            if not start_level.removed
            and start_level.selected_index is not None
        ],
        key=lambda start_level: start_level.selected_index
    )


def candidate_start_layers(start_layers, app_layers, context, logger):
    """Return start layers by application layer ID which may be shown,
    i.e. not removed and with an existing, authorized application layer.

    :param list(StartLayer) start_layers: Start layers of the application
    :param dict app_layers: Application layers by ID
    :param set context: Reader roles of the requester
    :param Logger logger: Application logger
    """
    candidates = {}
    for start_layer in start_layers:
        if start_layer.removed:
            continue
        app_layer = app_layers.get(start_layer.app_layer_id)
        if app_layer is None:
            logger.warning(
                "Start layer references missing application layer %s" %
                start_layer.app_layer_id
            )
            continue
        if not authorized(app_layer.readers, context):
            continue
        candidates[app_layer.id] = start_layer
    return candidates


def walk_visible_levels(level_tree, start_level_id, visited, candidates,
                        context, layer_map):
    """Breadth first walk from a start level, collecting authorized levels
    into `visited` and their start layers into `layer_map`.

    `visited` is shared by the walks of all start levels of a request, so
    a level reachable from several start levels is claimed by the first.

    :param LevelTree level_tree: Level forest
    :param int start_level_id: Level ID of the start level
    :param set visited: Visited level IDs, updated in place
    :param dict candidates: Candidate start layers by application layer ID
    :param set context: Reader roles of the requester
    :param dict layer_map: Start layers by application layer ID, updated
    """
    queue = deque([start_level_id])
    while queue:
        level = level_tree.get(queue.popleft())
        if level is None or level.id in visited:
            continue
        if not authorized(level.readers, context):
            # children are not reachable through an unauthorized level
            continue

        visited.add(level.id)
        queue.extend(level_tree.children_of(level.id))
        for app_layer_id in level.layer_ids:
            start_layer = candidates.get(app_layer_id)
            if start_layer is not None:
                layer_map[app_layer_id] = start_layer


def resolve_visibility(level_tree, start_levels, candidates, context,
                       logger):
    """Determine visible levels and application layers.

    :param LevelTree level_tree: Level forest
    :param list(StartLevel) start_levels: Sorted start levels
    :param dict candidates: Candidate start layers by application layer ID
    :param set context: Reader roles of the requester
    :param Logger logger: Application logger
    """
    visible_levels = set()
    layer_map = {}
    for start_level in start_levels:
        if level_tree.get(start_level.level_id) is None:
            logger.warning(
                "Start level references missing level %s" %
                start_level.level_id
            )
            continue
        walk_visible_levels(
            level_tree, start_level.level_id, visible_levels, candidates,
            context, layer_map
        )
    return visible_levels, layer_map


def service_layer_visible(service_layer_tree, service_layer, context):
    """Return whether a service layer and all its parents are authorized.

    :param ServiceLayerTree service_layer_tree: Service layer hierarchies
    :param ServiceLayer service_layer: Service layer
    :param set context: Reader roles of the requester
    """
    return all(
        authorized(layer.readers, context)
        for layer in service_layer_tree.chain(service_layer)
    )


def filter_service_visibility(layer_map, app_layers, service_layer_tree,
                              services, context, application, logger):
    """Remove application layers whose backing service layer is missing or
    not authorized.

    :param dict layer_map: Start layers by application layer ID
    :param dict app_layers: Application layers by ID
    :param ServiceLayerTree service_layer_tree: Service layer hierarchies
    :param dict services: Geo services by ID
    :param set context: Reader roles of the requester
    :param Application application: Application
    :param Logger logger: Application logger
    """
    result = {}
    for app_layer_id, start_layer in layer_map.items():
        app_layer = app_layers[app_layer_id]
        service = services.get(app_layer.service_id)
        if service is None:
            logger.warning(
                "App %s references layer '%s' of missing service %s" % (
                    application.id, app_layer.layer_name, app_layer.service_id
                )
            )
            continue
        if is_proxied_secured_service_in_public_application(
            application, service
        ):
            logger.debug(
                "Hiding layer '%s' of secured service %s in public app %s" % (
                    app_layer.layer_name, service.id, application.id
                )
            )
            continue
        if not authorized(service.readers, context):
            continue

        service_layer = service_layer_tree.find(
            app_layer.service_id, app_layer.layer_name
        )
        if service_layer is None:
            logger.warning(
                "App %s references layer '%s' not found in service %s" % (
                    application.id, app_layer.layer_name, service.id
                )
            )
            continue
        if not service_layer_visible(service_layer_tree, service_layer,
                                     context):
            continue

        result[app_layer_id] = start_layer
    return result
