"""
Controller / schema discovery tests.

Modules are written to tmp_path and discovered by glob.
"""

import logging
import textwrap

from swagger_contracts import SwaggerConfig, SwaggerRouter
from swagger_contracts.app import create_app
from swagger_contracts.contracts import discover
from swagger_contracts.contracts.discovery import is_controller, is_definition


SCHEMAS = '''
from swagger_contracts.contracts import Object, String

UserSchema = Object(
    {"userName": String(min_length=6, description="username", required=True)},
    id="UserSchema",
)
InlineOnly = Object({"a": String()})
'''

CONTROLLERS = '''
from swagger_contracts import ParamIn, Registry
from swagger_contracts.contracts import Ref

registry = Registry()
users = registry.controller("/users", name="users")


@users.post("")
@users.parameter("user", Ref("UserSchema"), ParamIn.BODY, required=True)
def create_user(ctx):
    return ctx.body, 201
'''


def _write(directory, name, source):
    path = directory / name
    path.write_text(textwrap.dedent(source))
    return path


def test_discover_collects_controllers_and_definitions(tmp_path):
    _write(tmp_path, 'schemas.py', SCHEMAS)
    _write(tmp_path, 'users.py', CONTROLLERS)
    _write(tmp_path, '__init__.py', '')

    values = discover(str(tmp_path / '*.py'))

    assert [type(v).__name__ for v in values] == ['Object', 'Controller']
    assert is_definition(values[0]) and values[0].id == 'UserSchema'
    assert is_controller(values[1])


def test_discover_recursive_glob(tmp_path):
    nested = tmp_path / 'api' / 'v1'
    nested.mkdir(parents=True)
    _write(nested, 'schemas.py', SCHEMAS)

    values = discover(str(tmp_path / '**' / '*.py'))

    assert [v.id for v in values] == ['UserSchema']


def test_module_without_exports_warns(tmp_path, caplog):
    _write(tmp_path, 'helpers.py', 'VALUE = 1\n')

    with caplog.at_level(logging.WARNING, logger='swagger_contracts.contracts.discovery'):
        values = discover(str(tmp_path / '*.py'))

    assert values == []
    assert any("helpers.py" in record.getMessage() for record in caplog.records)


def test_no_matches(tmp_path):
    assert discover(str(tmp_path / 'missing' / '*.py')) == []


def test_router_auto_imports(tmp_path):
    _write(tmp_path, 'schemas.py', SCHEMAS)
    controllers = tmp_path / 'controllers'
    controllers.mkdir()
    _write(controllers, 'users.py', CONTROLLERS)

    router = SwaggerRouter(config=SwaggerConfig(
        title='Discovered',
        schemas_glob=str(tmp_path / 'schemas.py'),
        controllers_glob=str(controllers / '*.py'),
        swagger_file='swagger.json',
    ))

    doc = router.to_dict()
    assert 'UserSchema' in doc['definitions']
    assert doc['paths']['/users']['post']['parameters'][0]['required'] is True

    client = create_app(router, config={'TESTING': True}).test_client()
    assert client.post('/users', json={}).status_code == 400
    assert client.post('/users', json={'userName': 'adalovelace'}).status_code == 201
    assert client.get('/swagger.json').get_json()['info']['title'] == 'Discovered'
