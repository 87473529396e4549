from flask import Flask, request, jsonify, json, redirect
from flask_restx import Resource
import urllib.parse
import requests
import os


from qwc_services_core.api import Api
from qwc_services_core.auth import auth_manager, optional_auth, get_identity  # noqa: E402
from qwc_services_core.tenant_handler import TenantHandler, TenantPrefixMiddleware, TenantSessionInterface
from qwc_services_core.runtime_config import RuntimeConfig
from map_service import MapService


# Autologin config
AUTH_PATH = os.environ.get(
    'AUTH_SERVICE_URL',
    # For backward compatiblity
    os.environ.get('AUTH_PATH', '/auth/'))

# Flask application
app = Flask(__name__)

api = Api(app, version='1.0', title='Map service API',
          description="""API for the map viewer service.

Provide the map configuration (layer trees, layers and services) of viewer
applications, filtered by the permissions of the user.
          """,
          default_label='Map operations', doc='/api/'
)
# disable verbose 404 error message
app.config['ERROR_404_HELP'] = False

auth = auth_manager(app, api)

# create tenant handler
tenant_handler = TenantHandler(app.logger)
app.wsgi_app = TenantPrefixMiddleware(app.wsgi_app)
app.session_interface = TenantSessionInterface()


def map_service_handler():
    """Get or create a MapService instance for a tenant."""
    tenant = tenant_handler.tenant()
    handler = tenant_handler.handler('map', 'map', tenant)
    if handler is None:
        handler = tenant_handler.register_handler(
            'map', tenant, MapService(tenant, app.logger))
    return handler


def get_identity_or_auth(map_service):
    identity = get_identity()
    if not identity and map_service.basic_auth_login_url:
        # Check for basic auth
        auth = request.authorization
        if auth:
            headers = {}
            if tenant_handler.tenant_header:
                # forward tenant header
                headers[tenant_handler.tenant_header] = tenant_handler.tenant()
            for login_url in map_service.basic_auth_login_url:
                app.logger.debug(f"Checking basic auth via {login_url}")
                data = {'username': auth.username, 'password': auth.password}
                resp = requests.post(login_url, data=data, headers=headers)
                if resp.ok:
                    json_resp = json.loads(resp.text)
                    app.logger.debug(json_resp)
                    return json_resp.get('identity')
    return identity


def auth_path_prefix():
    return app.session_interface.tenant_path_prefix().rstrip("/") + "/" + AUTH_PATH.lstrip("/")


@app.before_request
@optional_auth
def assert_user_is_logged():
    public_endpoints = ['healthz', 'ready']
    if request.endpoint in public_endpoints:
        return

    tenant = tenant_handler.tenant()
    config_handler = RuntimeConfig("map", app.logger)
    config = config_handler.tenant_config(tenant)
    public_paths = config.get("public_paths", [])
    if request.path in public_paths:
        return

    if config.get("auth_required", False):
        map_service = map_service_handler()
        identity = get_identity_or_auth(map_service)
        if identity is None:
            app.logger.info("Access denied, authentication required")
            prefix = auth_path_prefix().rstrip('/')
            return redirect(prefix + f"/login?url={urllib.parse.quote(request.url)}")


# routes
@api.route('/app/<app_name>/map')
@api.param('app_name', 'Application name', default='default')
class Map(Resource):
    @api.doc('map_get')
    @api.param('version', 'Application version')
    @optional_auth
    def get(self, app_name):
        """Map configuration

        Return the layer trees, visible layers and services of an
        application for the current user.
        """
        map_service = map_service_handler()
        identity = get_identity_or_auth(map_service)
        return map_service.map(
            identity, app_name, request.args.get('version'),
            request.host_url, request.script_root)


""" readyness check endpoint """
@app.route("/ready", methods=['GET'])
def ready():
    return jsonify({"status": "OK"})


""" liveness check endpoint """
@app.route("/healthz", methods=['GET'])
def healthz():
    return jsonify({"status": "OK"})


# local webserver
if __name__ == '__main__':
    print("Starting map service...")
    from flask_cors import CORS
    CORS(app)
    app.run(host='localhost', port=5030, debug=True)
