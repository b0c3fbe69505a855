"""
Root pytest configuration.

Provides:
- A users API declared with the Controller API (build_users_api)
- Shared fixtures (router, app, client)
"""

import pytest

from swagger_contracts import ParamIn, Registry, SwaggerConfig, SwaggerRouter
from swagger_contracts.app import create_app
from swagger_contracts.contracts import File, Integer, Number, Object, Ref, String


UserSchema = Object(
    {'userName': String(min_length=6, description='username', required=True)},
    id='UserSchema',
)


def build_users_api(base_path='/v1', decorator=None):
    """Users controller mounted under base_path, with swagger file and UI."""
    registry = Registry()
    users = registry.controller(f'{base_path}/users', name='users')

    @users.get('/{id}')
    @users.parameter('id', Integer(description='User id'), ParamIn.PATH)
    @users.parameter('name', String(), required=False)
    @users.response(200, Object({'id': Integer(required=True), 'name': String()}))
    @users.summary('Fetch a user')
    @users.tag('users')
    def get_user(ctx):
        user = {'id': ctx.params['id']}
        if 'name' in ctx.query:
            user['name'] = ctx.query['name']
        return user

    @users.post('')
    @users.parameter('user', Ref('UserSchema'), ParamIn.BODY)
    @users.response(201, Ref('UserSchema'))
    @users.summary('Create a user')
    def create_user(ctx):
        return ctx.body, 201

    @users.get('/{id}/stats')
    @users.parameter('id', Integer(), ParamIn.PATH)
    @users.parameter('total', String(), required=False)
    @users.response(200, Object({'total': Number(required=True)}))
    def user_stats(ctx):
        return {'total': ctx.query.get('total', '5')}

    @users.post('/{id}/avatar')
    @users.parameter('id', Integer(), ParamIn.PATH)
    @users.parameter('title', String(), ParamIn.FORM_DATA)
    @users.parameter('avatar', File(required=True), ParamIn.FORM_DATA)
    @users.consumes('multipart/form-data')
    def upload_avatar(ctx):
        return {'id': ctx.params['id'], 'title': ctx.body.get('title'), 'file': ctx.body['avatar'].filename}

    router = SwaggerRouter(registry, SwaggerConfig(title='Users API', base_path=base_path))
    router.add_definition(UserSchema)
    router.load_controller(users, decorator=decorator)
    router.set_swagger_file('swagger.json')
    router.load_swagger_ui('/docs')
    return router


@pytest.fixture
def users_api():
    """Builder for a fresh users API: users_api(base_path, decorator)."""
    return build_users_api


@pytest.fixture
def router():
    return build_users_api()


@pytest.fixture
def app(router):
    """Create test Flask application."""
    app = create_app(router, config={'TESTING': True})
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()
