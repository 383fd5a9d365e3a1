"""
Unit tests for the schema validation rules.

Live column metadata comes from the fake connection in tests.fixtures.mocks.
"""
import pytest
from tableorm.exceptions import ConsistencyWarning, SchemaError
from tableorm.strategy import ColumnInfo
from tableorm.validator import Validator


@pytest.fixture
def validator(fake_client, fake_connection):
    return Validator(fake_client.schema, fake_connection)


@pytest.fixture
def lenient(fake_client, fake_connection):
    return Validator(fake_client.schema, fake_connection, strict=False)


def declare_blog(make_table, **kw):
    posts = make_table('Post', 'postId', [('title', 'varchar(256)'), ('userId', 'int')], **kw)
    users = make_table('User', 'userId', [('name', 'varchar(64)'), ('posts', 'Post[]')], **kw)
    return users, posts


class TestValidSchema:

    def test_clean_report(self, validator, make_table):
        declare_blog(make_table)
        report = validator.validate_all()
        assert report.clean

    def test_every_table_checked_against_database(self, validator, make_table, fake_connection):
        declare_blog(make_table)
        validator.validate_all()
        assert fake_connection.strategy.requested == ['Post', 'User']


class TestConsistency:

    def test_missing_table_warns(self, validator, make_table):
        declare_blog(make_table, live=False)
        report = validator.validate_all()
        assert len(report.warnings) == 2
        assert all(isinstance(w, ConsistencyWarning) for w in report.warnings)
        assert 'cannot find Post in database.' in str(report.warnings[0])

    def test_extra_column_warns(self, validator, make_table, fake_connection):
        make_table('Item', 'itemId', [('a', 'int')])
        fake_connection.columns['Item'].append(ColumnInfo('legacy', 'int'))
        report = validator.validate_all()
        assert len(report.warnings) == 1
        assert "['legacy']" in str(report.warnings[0])

    def test_missing_key_column_raises(self, validator, make_table, fake_connection):
        make_table('Item', 'itemId', [('a', 'int')])
        fake_connection.columns['Item'] = [ColumnInfo('a', 'int')]
        with pytest.raises(SchemaError, match=r"cannot find 'Item.itemId' in database"):
            validator.validate_all()

    def test_key_type_mismatch_raises(self, validator, make_table, fake_connection):
        make_table('Item', 'itemId', [('a', 'int')])
        fake_connection.columns['Item'][0] = ColumnInfo('itemId', 'varchar', 10)
        with pytest.raises(SchemaError, match=r"in db it has type 'varchar\(10\)'"):
            validator.validate_all()

    def test_missing_property_column_raises(self, validator, make_table, fake_connection):
        make_table('Item', 'itemId', [('a', 'int'), ('b', 'bit')])
        fake_connection.columns['Item'].pop()
        with pytest.raises(SchemaError, match=r"cannot find schema row 'Item.b'"):
            validator.validate_all()

    @pytest.mark.parametrize('live', [
        ColumnInfo('b', 'varchar', 128),
        ColumnInfo('b', 'mediumtext'),
    ], ids=['precision', 'type'])
    def test_property_mismatch_raises(self, validator, make_table, fake_connection, live):
        make_table('Item', 'itemId', [('b', 'varchar(256)')])
        fake_connection.columns['Item'][1] = live
        with pytest.raises(SchemaError, match=r"'Item.b' has type 'varchar\(256\)'"):
            validator.validate_all()

    def test_relation_needs_no_column(self, validator, make_table):
        users, _ = declare_blog(make_table)
        assert 'posts' not in {c.name for c in validator.connection.strategy.columns['User']}
        assert validator.validate_all().clean

    def test_lenient_records_errors(self, lenient, make_table, fake_connection):
        make_table('Item', 'itemId', [('a', 'int')])
        fake_connection.columns['Item'] = [ColumnInfo('itemId', 'double'), ColumnInfo('a', 'int')]
        report = lenient.validate_all()
        assert len(report.errors) == 1
        assert not report.clean


class TestNames:

    @pytest.mark.parametrize(('name', 'key', 'prop'), [
        ('My_Table', 'itemId', 'a'),
        ('Item', 'item-id', 'a'),
        ('Item', 'itemId', 'a b'),
    ], ids=['table', 'key', 'property'])
    def test_special_characters(self, validator, make_table, name, key, prop):
        make_table(name, key, [(prop, 'int')], live=False)
        with pytest.raises(SchemaError, match='must not contain any special characters'):
            validator.validate_all()


class TestDuplicates:

    def test_duplicate_table_name(self, validator, make_table):
        make_table('Item', 'itemId', [('a', 'int')], live=False)
        make_table('Item', 'otherId', [('a', 'int')], live=False)
        with pytest.raises(SchemaError, match='duplicate table name Item'):
            validator.validate_all()

    def test_duplicate_key_name(self, validator, make_table):
        make_table('Item', 'itemId', [('a', 'int')])
        make_table('Other', 'itemId', [('a', 'int')])
        with pytest.raises(SchemaError, match='duplicate table key name itemId'):
            validator.validate_all()

    def test_duplicate_property_name(self, make_table):
        with pytest.raises(SchemaError, match='duplicate property names'):
            make_table('Item', 'itemId', [('a', 'int'), ('a', 'bit')])


class TestCycles:

    def test_mutual_dependency(self, validator, make_table):
        make_table('A', 'aId', [('bId', 'int')])
        make_table('B', 'bId', [('aId', 'int')])
        with pytest.raises(SchemaError, match='dependency detected! A and B'):
            validator.validate_all()

    def test_one_way_dependency(self, validator, make_table):
        make_table('A', 'aId', [('x', 'int')])
        make_table('B', 'bId', [('aId', 'int')])
        assert validator.validate_all().clean


class TestProperties:

    @pytest.mark.parametrize(('prop_type', 'message'), [
        ('varchar', 'varchar precision is required'),
        ('int[]', 'array of primitives not supported'),
        ('Nothing[]', "unknown type 'Nothing'"),
        ('varchar(', 'type error'),
    ], ids=['varchar-no-precision', 'primitive-array', 'unknown', 'unparseable'])
    def test_rejected(self, validator, make_table, prop_type, message):
        make_table('Item', 'itemId', [('a', prop_type)], live=False)
        with pytest.raises(SchemaError, match=message):
            validator.validate_all()

    def test_one_to_one_unsupported(self, validator, make_table):
        make_table('Post', 'postId', [('userId', 'int')])
        make_table('User', 'userId', [('post', 'Post')])
        with pytest.raises(SchemaError, match='1-1 fail'):
            validator.validate_all()

    def test_relation_precision_rejected(self, validator, make_table):
        make_table('Post', 'postId', [('userId', 'int')])
        make_table('User', 'userId', [('posts', 'Post(3)[]')])
        with pytest.raises(SchemaError, match='unexpected precision value'):
            validator.validate_all()

    def test_one_to_many_requires_owner_key(self, validator, make_table):
        make_table('Post', 'postId', [('title', 'varchar(20)')])
        make_table('User', 'userId', [('posts', 'Post[]')])
        with pytest.raises(SchemaError, match="1-M fail: table 'Post' must contain 'int userId' as property"):
            validator.validate_all()

    def test_one_to_many_owner_key_must_be_int(self, validator, make_table):
        make_table('Post', 'postId', [('title', 'varchar(20)'), ('userId', 'varchar(8)')])
        make_table('User', 'userId', [('posts', 'Post[]')])
        with pytest.raises(SchemaError, match="must contain 'int userId' as property"):
            validator.validate_all()

    def test_parse_error_is_wrapped(self, validator, make_table):
        make_table('Item', 'itemId', [('a', 'int(5)')], live=False)
        with pytest.raises(SchemaError) as exc_info:
            validator.validate_all()
        assert exc_info.value.__cause__ is not None
