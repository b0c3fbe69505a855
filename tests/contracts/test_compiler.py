"""
Route compiler tests: mounting, the Swagger document and served endpoints.
"""

import io
import logging

import pytest
from flask import jsonify

from swagger_contracts import ParamIn, Registry, SwaggerConfig, SwaggerRouter
from swagger_contracts.app import create_app
from swagger_contracts.contracts import (
    DeclarationError,
    FlaskRouter,
    Integer,
    Number,
    Object,
    String,
    definition,
)


class RecordingRouter(FlaskRouter):
    """FlaskRouter that remembers what was mounted."""

    def __init__(self):
        super().__init__()
        self.mounted = []

    def register(self, verb, path, *middleware, endpoint=None):
        self.mounted.append((verb, path))
        return super().register(verb, path, *middleware, endpoint=endpoint)


# =============================================================================
# MOUNTING
# =============================================================================

class TestMounting:
    """Declared paths -> native Flask rules and document keys."""

    def test_placeholders_rewritten(self):
        assert FlaskRouter.to_native_path('/v1/users/{id}/posts/{post_id}') == '/v1/users/<id>/posts/<post_id>'

    def test_base_path_kept_on_mount_stripped_in_document(self):
        registry = Registry()
        users = registry.controller('/v1/users')

        @users.get('/{id}')
        @users.parameter('id', Integer(), ParamIn.PATH)
        def get_user(ctx):
            return {}

        recorder = RecordingRouter()
        router = SwaggerRouter(registry, SwaggerConfig(base_path='/v1'), router=recorder)
        router.load_controller(users)

        assert recorder.mounted == [('get', '/v1/users/<id>')]
        assert list(router.document.paths) == ['/users/{id}']
        assert router.to_dict()['basePath'] == '/v1'

    def test_base_path_stripped_only_at_segment_boundary(self):
        router = SwaggerRouter(config=SwaggerConfig(base_path='/v1'))

        assert router._document_path('/v1') == '/'
        assert router._document_path('/v1/users') == '/users'
        assert router._document_path('/v1beta/users') == '/v1beta/users'
        assert router._document_path('/api/v1/users') == '/api/v1/users'

    def test_unsupported_verb_documented_not_mounted(self, caplog):
        registry = Registry()
        jobs = registry.controller('/jobs')

        @jobs.route('purge', '')
        def purge_jobs(ctx):
            return {}

        recorder = RecordingRouter()
        router = SwaggerRouter(registry, router=recorder)
        with caplog.at_level(logging.WARNING, logger='swagger_contracts.compiler'):
            router.load_controller(jobs)

        assert recorder.mounted == []
        assert 'purge' in router.document.paths['/jobs']
        assert any("purge" in record.getMessage() for record in caplog.records)

    def test_handlers_without_routes_skipped(self):
        registry = Registry()
        users = registry.controller('/users')

        @users.parameter('q', String())
        def helper(ctx):
            return {}

        recorder = RecordingRouter()
        SwaggerRouter(registry, router=recorder).load_controller(users)

        assert recorder.mounted == []

    def test_controller_without_declarations(self, caplog):
        with caplog.at_level(logging.WARNING, logger='swagger_contracts.compiler'):
            SwaggerRouter().load_controller(object())

        assert any("no declarations" in record.getMessage() for record in caplog.records)

    def test_external_middleware_runs_before_validation(self):
        seen = []

        def capture(ctx, call_next):
            seen.append(ctx.params['id'])
            return call_next()

        registry = Registry()
        users = registry.controller('/users')

        @users.get('/{id}')
        @users.parameter('id', Integer(), ParamIn.PATH)
        @users.middleware(capture)
        def get_user(ctx):
            seen.append(ctx.params['id'])
            return {'id': ctx.params['id']}

        router = SwaggerRouter(registry)
        router.load_controller(users)
        client = create_app(router, config={'TESTING': True}).test_client()

        response = client.get('/users/5')

        assert response.status_code == 200
        assert seen == ['5', 5]


# =============================================================================
# DOCUMENT
# =============================================================================

class TestDocument:
    """The aggregated Swagger 2.0 document."""

    def test_top_level(self, router):
        doc = router.to_dict()

        assert doc['swagger'] == '2.0'
        assert doc['info'] == {'title': 'Users API', 'version': '1.0.0'}
        assert doc['basePath'] == '/v1'
        assert set(doc['paths']) == {'/users/{id}', '/users', '/users/{id}/stats', '/users/{id}/avatar'}

    def test_operation(self, router):
        operation = router.to_dict()['paths']['/users/{id}']['get']

        assert operation['summary'] == 'Fetch a user'
        assert operation['tags'] == ['users']
        assert operation['consumes'] == ['application/json']
        assert [p['name'] for p in operation['parameters']] == ['name', 'id']
        assert operation['parameters'][1] == {
            'description': 'User id',
            'in': 'path',
            'name': 'id',
            'required': True,
            'type': 'integer',
        }
        assert operation['responses']['200']['schema']['properties']['id'] == {'type': 'integer'}

    def test_body_parameter_and_definitions(self, router):
        doc = router.to_dict()
        operation = doc['paths']['/users']['post']

        assert operation['parameters'] == [{
            'description': '',
            'in': 'body',
            'name': 'user',
            'required': False,
            'schema': {'$ref': '#/definitions/UserSchema', 'required': False},
        }]
        assert operation['responses']['201']['schema']['$ref'] == '#/definitions/UserSchema'
        assert doc['definitions']['UserSchema'] == {
            'type': 'object',
            'properties': {'userName': {'type': 'string', 'minLength': 6, 'description': 'username'}},
            'required': ['userName'],
        }

    def test_inline_body_keeps_required_fields(self):
        registry = Registry()
        users = registry.controller('/users')

        @users.post('')
        @users.parameter('user', Object({'name': String(required=True), 'age': Integer()}), ParamIn.BODY, required=True)
        def create_user(ctx):
            return ctx.body

        router = SwaggerRouter()
        router.load_controller(users)

        parameter = router.to_dict()['paths']['/users']['post']['parameters'][0]
        assert parameter['required'] is True
        assert parameter['schema'] == {
            'type': 'object',
            'properties': {'name': {'type': 'string'}, 'age': {'type': 'integer'}},
            'required': ['name'],
        }

    def test_form_data_parameters(self, router):
        operation = router.to_dict()['paths']['/users/{id}/avatar']['post']

        assert operation['consumes'] == ['multipart/form-data']
        avatar = [p for p in operation['parameters'] if p['name'] == 'avatar'][0]
        assert avatar == {'description': '', 'in': 'formData', 'name': 'avatar', 'required': True, 'type': 'file'}

    def test_add_definition_requires_id(self):
        with pytest.raises(DeclarationError):
            SwaggerRouter().add_definition(Object({'a': String()}))

    def test_add_definition_from_model(self):
        @definition('Address', 'Postal address')
        class Address:
            street = String(required=True)

        router = SwaggerRouter()
        router.add_definition(Address)

        assert router.to_dict()['definitions']['Address'] == {
            'type': 'object',
            'properties': {'street': {'type': 'string'}},
            'required': ['street'],
            'description': 'Postal address',
        }
        assert 'Address' in router.registry.models

    def test_load_consumes_definitions_before_controllers(self):
        registry = Registry()
        users = registry.controller('/users')
        schema = Object({'userName': String(required=True)}, id='NewUser')

        @users.post('')
        @users.parameter('user', {'$ref': '#/definitions/NewUser'}, ParamIn.BODY)
        def create_user(ctx):
            return ctx.body

        router = SwaggerRouter()
        router.load([users, schema, 'ignored'])

        assert 'NewUser' in router.to_dict()['definitions']
        assert router.to_dict()['paths']['/users']['post']['parameters'][0]['schema'] == {
            '$ref': '#/definitions/NewUser',
            'required': False,
        }

    def test_config_from_mapping(self):
        router = SwaggerRouter(config={
            'info': {'title': 'Users API', 'version': '2.0.0', 'description': 'Users'},
            'basePath': '/v2/',
            'tags': [{'name': 'users'}],
        })

        doc = router.to_dict()
        assert doc['info'] == {'title': 'Users API', 'version': '2.0.0', 'description': 'Users'}
        assert doc['basePath'] == '/v2'
        assert doc['tags'] == [{'name': 'users'}]


# =============================================================================
# SERVED ENDPOINTS
# =============================================================================

class TestServing:
    """End-to-end through the Flask test client."""

    def test_valid_request(self, client):
        response = client.get('/v1/users/5?name=ada')

        assert response.status_code == 200
        assert response.get_json() == {'id': 5, 'name': 'ada'}

    def test_invalid_path_parameter(self, client):
        response = client.get('/v1/users/abc')

        assert response.status_code == 400
        error = response.get_json()['error']
        assert error['code'] == 'INVALID_PARAMS'
        assert error['message'].startswith('"params.id"')
        assert error['requestId'] == response.headers['X-Request-ID']

    def test_body_validation(self, client):
        response = client.post('/v1/users', json={'userName': 'bob'})

        assert response.status_code == 400
        assert response.get_json()['error']['details']['violations'][0]['field'] == 'body.userName'

    def test_created(self, client):
        response = client.post('/v1/users', json={'userName': 'adalovelace'})

        assert response.status_code == 201
        assert response.get_json() == {'userName': 'adalovelace'}

    def test_response_extra_keys_rejected(self, client):
        response = client.post('/v1/users', json={'userName': 'adalovelace', 'role': 'admin'})

        assert response.status_code == 500
        assert response.get_json()['error']['code'] == 'RESPONSE_SCHEMA_MISMATCH'

    def test_response_coerced(self, client):
        response = client.get('/v1/users/5/stats?total=5')

        assert response.status_code == 200
        assert response.get_json() == {'total': 5.0}

    def test_response_mismatch(self, client):
        response = client.get('/v1/users/5/stats?total=abc')

        assert response.status_code == 500
        assert response.get_json()['error']['code'] == 'RESPONSE_SCHEMA_MISMATCH'

    @staticmethod
    def _orders_client():
        registry = Registry()
        orders = registry.controller('/orders')

        @orders.post('')
        @orders.parameter('id', String(), required=False)
        @orders.response(201, Object({'id': Integer(required=True)}))
        def create_order(ctx):
            return jsonify({'id': ctx.query.get('id', '7')}), 201

        @orders.get('/summary')
        @orders.response(200, Object({'total': Number(required=True)}))
        def order_summary(ctx):
            response = jsonify({'total': '5'})
            response.headers['X-Cache'] = 'hit'
            response.set_cookie('seen', '1')
            return response

        router = SwaggerRouter(registry)
        router.load_controller(orders)
        return create_app(router, config={'TESTING': True}).test_client()

    def test_response_object_with_status_validated(self):
        client = self._orders_client()

        response = client.post('/orders')
        assert response.status_code == 201
        assert response.get_json() == {'id': 7}

        response = client.post('/orders?id=abc')
        assert response.status_code == 500
        assert response.get_json()['error']['code'] == 'RESPONSE_SCHEMA_MISMATCH'

    def test_response_object_keeps_headers_and_cookies(self):
        response = self._orders_client().get('/orders/summary')

        assert response.status_code == 200
        assert response.get_json() == {'total': 5.0}
        assert response.headers['X-Cache'] == 'hit'
        assert 'seen=1' in response.headers['Set-Cookie']

    def test_multipart_upload(self, client):
        response = client.post(
            '/v1/users/5/avatar',
            data={'title': 'me', 'avatar': (io.BytesIO(b'png'), 'me.png')},
            content_type='multipart/form-data',
        )

        assert response.status_code == 200
        assert response.get_json() == {'id': 5, 'title': 'me', 'file': 'me.png'}

    def test_multipart_missing_file(self, client):
        response = client.post(
            '/v1/users/5/avatar',
            data={'title': 'me'},
            content_type='multipart/form-data',
        )

        assert response.status_code == 400
        assert response.get_json()['error']['message'] == '"formData.avatar" Field required'

    def test_swagger_file(self, client, router):
        assert router.get_swagger_file() == '/v1/swagger.json'

        response = client.get('/v1/swagger.json')

        assert response.status_code == 200
        assert response.mimetype == 'application/json'
        assert response.get_json() == router.to_dict()

    def test_swagger_ui(self, client):
        response = client.get('/v1/docs')

        assert response.status_code == 200
        assert b'swagger-ui' in response.data
        assert b'/v1/swagger.json' in response.data

    def test_ui_requires_swagger_file(self):
        with pytest.raises(DeclarationError):
            SwaggerRouter().load_swagger_ui('/docs')

    def test_decorator_wraps_every_handler(self, users_api):
        calls = []

        def timing(handler, ctx, call_next, summary):
            calls.append((handler.__name__, summary))
            return handler(ctx)

        client = create_app(users_api(decorator=timing), config={'TESTING': True}).test_client()
        response = client.get('/v1/users/5')

        assert response.status_code == 200
        assert calls == [('get_user', 'Fetch a user')]
