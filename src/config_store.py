import re

from models import (
    Application, AppLayer, AppLayerDetails, Bounds, GeoService, HiDpiMode,
    LayerDetails, Level, ServerType, ServiceDetails, ServiceLayer, StartLayer,
    StartLevel
)


def parse_bool(value, default=False):
    """Parse a boolean detail value, which may be stored as string.

    :param obj value: Raw value
    :param bool default: Value if absent
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ['1', 'true', 'yes']


def version_key(version):
    """Sort key for application versions, numeric parts compared as numbers.

    :param str version: Application version
    """
    if version is None:
        return ()
    return tuple(
        (0, int(part), '') if part.isdigit() else (1, 0, part)
        for part in re.split(r'[.\-_]', str(version))
    )


class ConfigStore:
    """ConfigStore class

    Read-only snapshot of the map viewer configuration resources
    (applications, levels, application layers and geo services with their
    layer hierarchies).

    All lookups are batched: each returns every requested entity in one call,
    silently omitting ids that are not configured.
    """

    def __init__(self, resources, logger):
        """Constructor

        :param obj resources: Config resources
        :param Logger logger: Application logger
        """
        self.logger = logger

        self.applications = []
        # levels by id, in config order
        self.levels = {}
        # child level ids by parent level id, in config order
        self.level_children = {}
        self.app_layers_by_id = {}
        self.services_by_id = {}
        # service layers by service id, in capabilities order
        self.layers_by_service = {}

        self.load_resources(resources)

    def load_resources(self, resources):
        """Load and index map configuration resources.

        :param obj resources: Config resources
        """
        for level in resources.get('levels', []):
            level = self.parse_level(level)
            self.levels[level.id] = level
            if level.parent_id is not None:
                self.level_children.setdefault(level.parent_id, []).append(
                    level.id
                )

        for app_layer in resources.get('app_layers', []):
            app_layer = self.parse_app_layer(app_layer)
            self.app_layers_by_id[app_layer.id] = app_layer

        for service in resources.get('services', []):
            geo_service = self.parse_service(service)
            self.services_by_id[geo_service.id] = geo_service
            layers = []
            if service.get('root_layer'):
                layers = self.collect_service_layers(
                    geo_service.id, service['root_layer']
                )
            self.layers_by_service[geo_service.id] = layers

        self.applications = [
            self.parse_application(app)
            for app in resources.get('applications', [])
        ]

        self.logger.debug(
            "Loaded %d applications, %d levels, %d app layers, %d services" % (
                len(self.applications), len(self.levels),
                len(self.app_layers_by_id), len(self.services_by_id)
            )
        )

    def collect_service_layers(self, service_id, layer, parent_id=None,
                               result=None):
        """Recursively collect the service layer hierarchy, parents first.

        Layers are numbered by their position in the hierarchy, group layers
        without a name are kept for their readers.

        :param int service_id: Geo service ID
        :param obj layer: Service layer config
        :param int parent_id: Parent layer ID
        :param list result: Collected layers
        """
        if result is None:
            result = []

        details = layer.get('details', {})
        hidpi_mode = None
        if details.get('hidpi.mode'):
            try:
                hidpi_mode = HiDpiMode(details['hidpi.mode'])
            except ValueError:
                self.logger.warning(
                    "Invalid hidpi.mode '%s' for layer '%s' of service %s" % (
                        details['hidpi.mode'], layer.get('name'), service_id
                    )
                )

        layer_id = len(result)
        result.append(ServiceLayer(
            id=layer_id,
            service_id=service_id,
            name=layer.get('name'),
            display_name=layer.get('title'),
            parent_id=parent_id,
            readers=frozenset(layer.get('readers', [])),
            min_scale=layer.get('min_scale'),
            max_scale=layer.get('max_scale'),
            legend_image_url=layer.get('legend_image_url'),
            abstract=layer.get('abstract'),
            details=LayerDetails(
                hidpi_mode=hidpi_mode,
                hidpi_substitute_layer=details.get('hidpi.substitute_layer')
            )
        ))
        for sublayer in layer.get('layers', []):
            self.collect_service_layers(
                service_id, sublayer, layer_id, result
            )
        return result

    def parse_level(self, level):
        return Level(
            id=level['id'],
            name=level.get('name', str(level['id'])),
            parent_id=level.get('parent'),
            background=parse_bool(level.get('background')),
            layer_ids=tuple(level.get('layers', [])),
            readers=frozenset(level.get('readers', [])),
            info=level.get('info')
        )

    def parse_app_layer(self, app_layer):
        details = app_layer.get('details', {})
        transparency = self.parse_int(
            details.get('transparency'), 'transparency', app_layer['id']
        )
        return AppLayer(
            id=app_layer['id'],
            service_id=app_layer['service'],
            layer_name=app_layer['layer_name'],
            readers=frozenset(app_layer.get('readers', [])),
            details=AppLayerDetails(
                # blank alias is treated as unset
                title_alias=(details.get('titleAlias') or '').strip() or None,
                transparency=transparency,
                context=details.get('context')
            ),
            attributes=tuple(app_layer.get('attributes', []))
        )

    def parse_service(self, service):
        details = service.get('details', {})
        server_type = ServerType.AUTO
        if details.get('serverType'):
            try:
                server_type = ServerType(details['serverType'])
            except ValueError:
                self.logger.warning(
                    "Invalid serverType '%s' for service %s, using auto" % (
                        details['serverType'], service['id']
                    )
                )
        return GeoService(
            id=service['id'],
            name=service.get('name', str(service['id'])),
            url=service['url'],
            protocol=service.get('protocol', 'wms').lower(),
            tiling_protocol=service.get('tiling_protocol'),
            readers=frozenset(service.get('readers', [])),
            authentication=service.get('authentication'),
            details=ServiceDetails(
                use_proxy=parse_bool(details.get('useProxy')),
                server_type=server_type,
                tiling_disabled=parse_bool(details.get('tiling.disable')),
                tiling_gutter=self.parse_int(
                    details.get('tiling.gutter'), 'tiling.gutter',
                    service['id']
                )
            )
        )

    def parse_application(self, app):
        def bounds(value):
            if not value:
                return None
            return Bounds(
                value['minx'], value['miny'], value['maxx'], value['maxy']
            )

        return Application(
            id=app['id'],
            name=app['name'],
            root_level_id=app['root_level'],
            # numeric versions in JSON are matched as strings
            version=(
                str(app['version']) if app.get('version') is not None
                else None
            ),
            title=app.get('title'),
            readers=frozenset(app.get('readers', [])),
            crs=app.get('crs'),
            initial_extent=bounds(app.get('initial_extent')),
            max_extent=bounds(app.get('max_extent')),
            start_levels=tuple(
                StartLevel(
                    level_id=entry['level'],
                    selected_index=entry.get('selected_index'),
                    removed=entry.get('removed', False)
                )
                for entry in app.get('start_levels', [])
            ),
            start_layers=tuple(
                StartLayer(
                    app_layer_id=entry['app_layer'],
                    checked=entry.get('checked', False),
                    removed=entry.get('removed', False)
                )
                for entry in app.get('start_layers', [])
            )
        )

    def parse_int(self, value, key, entity_id):
        if value is None or value == '':
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            self.logger.warning(
                "Invalid %s value '%s' for %s, ignoring" % (
                    key, value, entity_id
                )
            )
            return None

    def application(self, name, version=None):
        """Return application by name and version.

        Without version, the unversioned application is preferred, else the
        highest version.

        :param str name: Application name
        :param str version: Optional application version
        """
        candidates = [app for app in self.applications if app.name == name]
        if version is not None:
            return next(
                (app for app in candidates if app.version == str(version)),
                None
            )
        if not candidates:
            return None
        return max(
            candidates,
            key=lambda app: (app.version is None, version_key(app.version))
        )

    def level_forest(self, root_level_id):
        """Return the root level and all its transitive descendants.

        :param int root_level_id: Root level ID
        """
        if root_level_id not in self.levels:
            return []

        result = []
        seen = set()
        queue = [root_level_id]
        while queue:
            level_id = queue.pop(0)
            if level_id in seen or level_id not in self.levels:
                continue
            seen.add(level_id)
            result.append(self.levels[level_id])
            queue += self.level_children.get(level_id, [])
        return result

    def start_levels(self, application):
        return list(application.start_levels)

    def start_layers(self, application):
        return list(application.start_layers)

    def app_layers(self, ids):
        """Return application layers for a set of IDs.

        :param set ids: Application layer IDs
        """
        return [
            self.app_layers_by_id[app_layer_id] for app_layer_id in ids
            if app_layer_id in self.app_layers_by_id
        ]

    def service_layers(self, service_ids):
        """Return the layer hierarchies of a set of services.

        :param set service_ids: Geo service IDs
        """
        result = []
        for service_id in sorted(service_ids, key=str):
            result += self.layers_by_service.get(service_id, [])
        return result

    def services(self, service_ids):
        """Return geo services for a set of IDs.

        :param set service_ids: Geo service IDs
        """
        return [
            self.services_by_id[service_id]
            for service_id in sorted(service_ids, key=str)
            if service_id in self.services_by_id
        ]
