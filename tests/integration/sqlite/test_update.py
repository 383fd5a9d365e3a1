"""
update against a live SQLite database.
"""
import pytest
from tableorm import TypeMismatchError, UsageError

pytestmark = pytest.mark.sqlite


@pytest.fixture
def filled(debug_table):
    for a in (1, 2, 3):
        debug_table.insert_into({'a': a * 10, 'b': f'row{a}', 'c': False})
    return debug_table


def test_can_update_table(filled):
    filled.update({'debugTestTableId': 2}, {'b': 'changed', 'c': True})
    rows = filled.select(None, 'ORDER BY debugTestTableId')
    assert [row['b'] for row in rows] == ['row1', 'changed', 'row3']
    assert [row['c'] for row in rows] == [False, True, False]


def test_update_in(filled):
    filled.update({'a': [10, 30]}, {'a': 5})
    assert sorted(row['a'] for row in filled.select()) == [5, 5, 20]


def test_empty_entry_is_noop(sl_orm, filled):
    filled.select()
    calls = sl_orm.connection.calls
    filled.update({'debugTestTableId': 1}, {})
    assert sl_orm.connection.calls == calls


@pytest.mark.parametrize(('where', 'entry'), [
    (None, {'a': 1}),
    ({'a': 1}, None),
    ({}, {'a': 1}),
], ids=['no-where', 'no-entry', 'empty-where'])
def test_incorrect_arguments(filled, where, entry):
    with pytest.raises(UsageError):
        filled.update(where, entry)


@pytest.mark.parametrize(('where', 'entry'), [
    ({'debugTestTableId': 1}, {'a': 'abc'}),
    ({'debugTestTableId': 'abc'}, {'a': 1}),
    ({'debugTestTableId': 1}, {'b': 7}),
], ids=['entry', 'where', 'varchar'])
def test_incorrect_data_types(filled, where, entry):
    with pytest.raises(TypeMismatchError):
        filled.update(where, entry)
    assert sorted(row['a'] for row in filled.select()) == [10, 20, 30]


def test_nonexistent_properties(filled):
    with pytest.raises(UsageError):
        filled.update({'debugTestTableId': 1}, {'nope': 1})
    with pytest.raises(UsageError):
        filled.update({'nope': 1}, {'a': 1})


def test_key_cannot_be_updated(filled):
    with pytest.raises(UsageError):
        filled.update({'a': 10}, {'debugTestTableId': 9})


class TestOneToMany:

    @pytest.fixture
    def ada(self, blog):
        orm, users, posts = blog
        user_id = users.insert_into({
            'name': 'ada',
            'posts': [{'title': 'old1'}, {'title': 'old2'}],
        })
        other_id = users.insert_into({'name': 'bob', 'posts': [{'title': 'keep'}]})
        return users, posts, user_id, other_id

    def test_relation_is_replaced(self, ada):
        users, posts, user_id, other_id = ada
        users.update({'userId': user_id}, {'posts': [{'title': 'new1'}, {'title': 'new2'}, {'title': 'new3'}]})
        row = users.select({'userId': user_id})[0]
        assert sorted(post['title'] for post in row['posts']) == ['new1', 'new2', 'new3']
        assert row['name'] == 'ada'

    def test_other_owners_untouched(self, ada):
        users, posts, user_id, other_id = ada
        users.update({'userId': user_id}, {'posts': []})
        assert users.select({'userId': user_id})[0]['posts'] == []
        assert [post['title'] for post in users.select({'userId': other_id})[0]['posts']] == ['keep']
        assert len(posts.select()) == 1

    def test_scalar_and_relation_together(self, ada):
        users, posts, user_id, other_id = ada
        users.update({'name': 'ada'}, {'name': 'ada2', 'posts': [{'title': 'only'}]})
        row = users.select({'userId': user_id})[0]
        assert row['name'] == 'ada2'
        assert [post['title'] for post in row['posts']] == ['only']

    def test_relation_only_issues_no_update_statement(self, ada, mocker):
        users, posts, user_id, other_id = ada
        spy = mocker.spy(users.client.connection, 'run')
        users.update({'userId': user_id}, {'posts': [{'title': 'x'}]})
        statements = [c.args[0] for c in spy.call_args_list]
        assert not any(sql.startswith('UPDATE') for sql in statements)
