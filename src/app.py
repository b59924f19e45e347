# src/app.py
from wsgiref.simple_server import make_server
from urllib.parse import parse_qs
import json
import logging
import re
import sys

from src.config import PanelConfig, load_config
from src.logging_setup import configure_logging
from src.database.database import build_engine, build_session_factory
from src.database.db_init import initialize_db, seed_users
from src.repositories.sqlalchemy.sqlalchemy_user_repository import SqlalchemyUserRepository
from src.repositories.sqlalchemy.sqlalchemy_vps_repository import SqlalchemyVPSRepository
from src.repositories.sqlalchemy.sqlalchemy_activity_log_repository import SqlalchemyActivityLogRepository
from src.repositories.memory import MemoryStore, MemoryUserRepository, MemoryVPSRepository, MemoryActivityLogRepository
from src.services.authorization import require_admin
from src.services.compute_service import ComputeService
from src.services.dashboard_service import DashboardService
from src.services.identity_service import IdentityService
from src.services.terminal_service import TerminalService
from src.services.exceptions import *
from src.utils.transition_scheduler import TransitionScheduler

logger = logging.getLogger(__name__)

CORS_HEADERS = [
    ("Access-Control-Allow-Origin", "*"),
    ("Access-Control-Allow-Headers", "authorization, x-auth-token, content-type"),
    ("Access-Control-Allow-Methods", "GET, POST, PATCH, DELETE, OPTIONS"),
]

# --------------------------------------------------------------------------
## 요청 처리 유틸리티 함수
# --------------------------------------------------------------------------

def get_request_data(environ):
    try:
        content_length = int(environ.get("CONTENT_LENGTH") or 0)
        data = json.loads(environ["wsgi.input"].read(content_length)) if content_length > 0 else {}
    except (ValueError, json.JSONDecodeError):
        raise ValidationError("Invalid or missing JSON body.")
    if not isinstance(data, dict):
        raise ValidationError("JSON body must be an object.")
    return data

def get_query_params(environ):
    return {k: v[0] for k, v in parse_qs(environ.get("QUERY_STRING", "")).items()}

def parse_id(value, field="vps_id"):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"'{field}' must be an integer.")

def parse_limit(params, default=100):
    limit = parse_id(params.get('limit', default), 'limit')
    if limit < 1:
        raise ValidationError("'limit' must be a positive integer.")
    return limit

def get_bearer_token(environ):
    auth_header = environ.get('HTTP_AUTHORIZATION', '')
    if auth_header.lower().startswith('bearer '):
        return auth_header[7:].strip()
    return environ.get('HTTP_X_AUTH_TOKEN')

def authorize_and_get_caller(environ):
    auth_token = get_bearer_token(environ)
    if not auth_token:
        raise TokenInvalidError("Missing 'Authorization: Bearer' header.")
    identity_service = environ['services']['identity']
    return identity_service.validate_token(auth_token)

ERROR_STATUS_BY_KIND = {
    "Unauthorized": "401 Unauthorized",
    "Forbidden": "403 Forbidden",
    "NotFound": "404 Not Found",
    "ValidationError": "400 Bad Request",
    "InvalidAction": "400 Bad Request",
    "DuplicateVPS": "409 Conflict",
    "NotRunning": "409 Conflict",
    "InvalidTransition": "409 Conflict",
    "Conflict": "409 Conflict",
}

def handle_exception(e):
    if isinstance(e, PanelError):
        status = ERROR_STATUS_BY_KIND.get(e.kind, "500 Internal Server Error")
        kind, message = e.kind, str(e)
    else:
        logger.exception("Unhandled error while processing request")
        status, kind, message = "500 Internal Server Error", "InternalError", "Internal server error"
    return status, json.dumps({"success": False, "error": message, "kind": kind})

# --------------------------------------------------------------------------
## WSGI 애플리케이션 (의존성 주입 및 라우팅)
# --------------------------------------------------------------------------

class PanelApplication:
    """
    설정에 따라 저장소(SQLAlchemy 또는 메모리)를 구성하고, 요청마다 서비스 객체를 조립하는 WSGI 애플리케이션.
    예약 전이 스케줄러와 메모리 저장소는 요청 간에 공유됩니다.
    """
    def __init__(self, config: PanelConfig):
        self.config = config
        self.store = None
        self.session_factory = None

        if config.storage_backend == "memory":
            self.store = MemoryStore()
            seed_users(MemoryUserRepository(self.store), config)
        else:
            engine = build_engine(config.database_url)
            self.session_factory = build_session_factory(engine)
            initialize_db(engine, self.session_factory, config)

        self.scheduler = TransitionScheduler(self.run_scheduled_transition)

    def open_repositories(self):
        """(user_repo, vps_repo, log_repo, db_session)을 반환합니다. 메모리 저장소면 db_session은 None."""
        if self.store is not None:
            return (MemoryUserRepository(self.store), MemoryVPSRepository(self.store),
                    MemoryActivityLogRepository(self.store), None)
        db_session = self.session_factory()
        return (SqlalchemyUserRepository(db_session), SqlalchemyVPSRepository(db_session),
                SqlalchemyActivityLogRepository(db_session), db_session)

    def run_scheduled_transition(self, vps_id, expected_status):
        # 타이머 스레드에서 실행되므로 요청과 별개의 세션을 사용
        _, vps_repo, log_repo, db_session = self.open_repositories()
        try:
            ComputeService(vps_repo, log_repo, self.scheduler, self.config).complete_transition(vps_id, expected_status)
        finally:
            if db_session is not None:
                db_session.close()

    def __call__(self, environ, start_response):
        method = environ.get("REQUEST_METHOD", "")
        if method == "OPTIONS":
            start_response("200 OK", [("Content-Type", "text/plain")] + CORS_HEADERS)
            return [b"ok"]

        db_session = None
        try:
            # 1. 의존성 생성 (Repositories -> Services)
            user_repo, vps_repo, log_repo, db_session = self.open_repositories()

            # 2. 생성된 서비스 객체들을 environ을 통해 핸들러에 전달
            environ['services'] = {
                'identity': IdentityService(user_repo, vps_repo, self.config),
                'compute': ComputeService(vps_repo, log_repo, self.scheduler, self.config),
                'terminal': TerminalService(vps_repo, log_repo, self.config),
                'dashboard': DashboardService(user_repo, vps_repo, log_repo),
            }

            # 3. 라우팅 및 핸들러 실행
            path = environ.get("PATH_INFO", "")
            handler, path_args = None, []
            for route_method, pattern, route_handler in ROUTES:
                if method == route_method and (match := re.match(pattern, path)):
                    handler, path_args = route_handler, match.groups()
                    break

            if handler:
                status, response_body = handler(environ, *path_args)
            else:
                status, response_body = '404 Not Found', json.dumps({'success': False, 'error': 'Not Found', 'kind': 'NotFound'})

        except Exception as e:
            status, response_body = handle_exception(e)
        finally:
            if db_session is not None:
                db_session.close()

        start_response(status, [("Content-Type", "application/json")] + CORS_HEADERS)
        return [response_body.encode("utf-8")]

    def shutdown(self):
        self.scheduler.shutdown()


def create_app(config: PanelConfig = None) -> PanelApplication:
    return PanelApplication(config or load_config())

# --------------------------------------------------------------------------
## 핸들러 함수
# --------------------------------------------------------------------------

def auth_tokens_handler(environ, *args):
    data = get_request_data(environ)
    token = environ['services']['identity'].authenticate(data.get('username'), data.get('password'))
    return '201 Created', json.dumps(token)

def register_handler(environ, *args):
    data = get_request_data(environ)
    user = environ['services']['identity'].register(data.get('username'), data.get('password'))
    return '201 Created', json.dumps(user)

def revoke_token_handler(environ, *args):
    authorize_and_get_caller(environ)
    environ['services']['identity'].revoke_token(get_bearer_token(environ))
    return '204 No Content', ''

def me_handler(environ, *args):
    caller = authorize_and_get_caller(environ)
    user = environ['services']['identity'].get_user(caller.user_id)
    return '200 OK', json.dumps(user)

def create_user_handler(environ, *args):
    require_admin(authorize_and_get_caller(environ))
    data = get_request_data(environ)
    user = environ['services']['identity'].create_user(
        data.get('username'), data.get('password'), data.get('role', 'user')
    )
    return '201 Created', json.dumps(user)

def list_users_handler(environ, *args):
    require_admin(authorize_and_get_caller(environ))
    users = environ['services']['identity'].list_users()
    return '200 OK', json.dumps({"users": users})

def get_user_handler(environ, user_id):
    caller = authorize_and_get_caller(environ)
    if caller.user_id != int(user_id):
        require_admin(caller)
    user = environ['services']['identity'].get_user(int(user_id))
    return '200 OK', json.dumps(user)

def update_user_handler(environ, user_id):
    require_admin(authorize_and_get_caller(environ))
    data = get_request_data(environ)
    if 'role' in data:
        raise ValidationError("Role cannot be changed after creation.")
    active = data.get('is_active', data.get('active'))
    if not isinstance(active, bool):
        raise ValidationError("'is_active' (boolean) is required.")
    user = environ['services']['identity'].set_user_active(int(user_id), active)
    return '200 OK', json.dumps(user)

def delete_user_handler(environ, user_id):
    caller = authorize_and_get_caller(environ)
    require_admin(caller)
    if caller.user_id == int(user_id):
        raise ValidationError("Administrators cannot delete their own account.")
    environ['services']['identity'].delete_user(int(user_id))
    return '204 No Content', ''

def list_vps_handler(environ, *args):
    caller = authorize_and_get_caller(environ)
    vps_list = environ['services']['compute'].list_vps(caller)
    return '200 OK', json.dumps({"vps": vps_list})

def deploy_vps_handler(environ, *args):
    caller = authorize_and_get_caller(environ)
    data = get_request_data(environ)
    vps = environ['services']['compute'].deploy(caller, name=data.get('name'), config=data.get('config', data))
    return '201 Created', json.dumps(vps)

def get_vps_handler(environ, vps_id):
    caller = authorize_and_get_caller(environ)
    vps = environ['services']['compute'].get_status(caller, int(vps_id))
    return '200 OK', json.dumps(vps)

def destroy_vps_handler(environ, vps_id):
    caller = authorize_and_get_caller(environ)
    environ['services']['compute'].destroy(caller, int(vps_id))
    return '200 OK', json.dumps({"message": f"VPS '{vps_id}' destroyed."})

def vps_action_handler(environ, vps_id, action):
    caller = authorize_and_get_caller(environ)
    vps = getattr(environ['services']['compute'], action)(caller, int(vps_id))
    return '200 OK', json.dumps(vps)

def exec_handler(environ, vps_id):
    caller = authorize_and_get_caller(environ)
    data = get_request_data(environ)
    result = environ['services']['terminal'].execute(
        caller, int(vps_id), data.get('command'), data.get('working_directory')
    )
    return '200 OK', json.dumps(result)

def vps_logs_handler(environ, vps_id):
    caller = authorize_and_get_caller(environ)
    limit = parse_limit(get_query_params(environ))
    logs = environ['services']['dashboard'].list_activity(caller, vps_id=int(vps_id), limit=limit)
    return '200 OK', json.dumps({"logs": logs})

def logs_handler(environ, *args):
    caller = authorize_and_get_caller(environ)
    params = get_query_params(environ)
    vps_id = parse_id(params['vps_id']) if 'vps_id' in params else None
    limit = parse_limit(params)
    logs = environ['services']['dashboard'].list_activity(caller, vps_id=vps_id, limit=limit)
    return '200 OK', json.dumps({"logs": logs})

def dashboard_handler(environ, *args):
    caller = authorize_and_get_caller(environ)
    return '200 OK', json.dumps(environ['services']['dashboard'].dashboard(caller))

def docker_manager_handler(environ, *args):
    caller = authorize_and_get_caller(environ)
    data = get_request_data(environ)
    vps_id = parse_id(data['vps_id']) if data.get('vps_id') is not None else None
    result = environ['services']['compute'].manage(caller, data.get('action'), vps_id, data.get('config'))
    return '200 OK', json.dumps({"success": True, "data": result})

def terminal_exec_handler(environ, *args):
    caller = authorize_and_get_caller(environ)
    data = get_request_data(environ)
    if data.get('vps_id') is None:
        raise ValidationError("'vps_id' is required.")
    result = environ['services']['terminal'].execute(
        caller, parse_id(data['vps_id']), data.get('command'), data.get('working_directory')
    )
    return '200 OK', json.dumps({"success": True, "data": result})

ROUTES = [
    ('POST', r'^/v1/auth/tokens$', auth_tokens_handler),
    ('DELETE', r'^/v1/auth/tokens$', revoke_token_handler),
    ('POST', r'^/v1/auth/register$', register_handler),
    ('GET', r'^/v1/auth/me$', me_handler),
    ('POST', r'^/v1/users$', create_user_handler),
    ('GET', r'^/v1/users$', list_users_handler),
    ('GET', r'^/v1/users/([0-9]+)$', get_user_handler),
    ('PATCH', r'^/v1/users/([0-9]+)$', update_user_handler),
    ('DELETE', r'^/v1/users/([0-9]+)$', delete_user_handler),
    ('GET', r'^/v1/vps$', list_vps_handler),
    ('POST', r'^/v1/vps$', deploy_vps_handler),
    ('GET', r'^/v1/vps/([0-9]+)$', get_vps_handler),
    ('DELETE', r'^/v1/vps/([0-9]+)$', destroy_vps_handler),
    ('POST', r'^/v1/vps/([0-9]+)/actions/(start|stop|restart)$', vps_action_handler),
    ('POST', r'^/v1/vps/([0-9]+)/exec$', exec_handler),
    ('GET', r'^/v1/vps/([0-9]+)/logs$', vps_logs_handler),
    ('GET', r'^/v1/logs$', logs_handler),
    ('GET', r'^/v1/dashboard$', dashboard_handler),
    ('POST', r'^/v1/functions/docker-manager$', docker_manager_handler),
    ('POST', r'^/v1/functions/terminal-exec$', terminal_exec_handler),
]

# --------------------------------------------------------------------------
## 서버 실행
# --------------------------------------------------------------------------

if __name__ == "__main__":
    settings = load_config()
    configure_logging(settings.log_level)
    app = create_app(settings)
    try:
        with make_server(settings.host, settings.port, app) as httpd:
            logger.info("Serving VPS Control Panel on port %d (%s storage)...", settings.port, settings.storage_backend)
            httpd.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down.")
    except Exception as e:
        print(f"Error starting server: {e}", file=sys.stderr)
    finally:
        app.shutdown()
