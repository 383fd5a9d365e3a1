"""
delete_from against a live SQLite database.
"""
import pytest
from tableorm import TypeMismatchError, UsageError

pytestmark = pytest.mark.sqlite


@pytest.fixture
def filled(debug_table):
    for a in (1, 2, 3):
        debug_table.insert_into({'a': a, 'b': f'row{a}'})
    return debug_table


def test_can_delete_from_table(filled):
    assert filled.delete_from({'debugTestTableId': 2}) == 1
    assert [row['b'] for row in filled.select(None, 'ORDER BY debugTestTableId')] == ['row1', 'row3']


def test_delete_in(filled):
    assert filled.delete_from({'b': ['row1', 'row3']}) == 2
    assert [row['b'] for row in filled.select()] == ['row2']


def test_delete_empty_in_is_noop(filled):
    assert filled.delete_from({'a': []}) == 0
    assert len(filled.select()) == 3


@pytest.mark.parametrize('where', [None, {}], ids=['none', 'empty'])
def test_incorrect_arguments(filled, where):
    with pytest.raises(UsageError):
        filled.delete_from(where)
    assert len(filled.select()) == 3


def test_incorrect_data_type(filled):
    with pytest.raises(TypeMismatchError):
        filled.delete_from({'a': 'abc'})


def test_nonexistent_properties(filled):
    with pytest.raises(UsageError):
        filled.delete_from({'nope': 1})


def test_delete_cascades_one_to_many(blog):
    orm, users, posts = blog
    gone = users.insert_into({'name': 'gone', 'posts': [{'title': 'a'}, {'title': 'b'}]})
    kept = users.insert_into({'name': 'kept', 'posts': [{'title': 'c'}]})

    users.delete_from({'name': 'gone'})

    assert users.select({'userId': gone}) == []
    assert posts.select({'userId': gone}) == []
    assert orm.admin_query(f'SELECT * FROM Post WHERE userId = {gone}') == []
    assert [post['title'] for post in users.select({'userId': kept})[0]['posts']] == ['c']


def test_delete_cascades_to_grandchildren(sl_orm):
    comments = sl_orm.declare_table('Comment', 'commentId', [
        {'name': 'text', 'type': 'varchar(64)'},
        {'name': 'postId', 'type': 'int'},
    ])
    posts = sl_orm.declare_table('Post', 'postId', [
        {'name': 'title', 'type': 'varchar(64)'},
        {'name': 'userId', 'type': 'int'},
        {'name': 'comments', 'type': 'Comment[]'},
    ])
    users = sl_orm.declare_table('User', 'userId', [
        {'name': 'name', 'type': 'varchar(64)'},
        {'name': 'posts', 'type': 'Post[]'},
    ])
    for table in (comments, posts, users):
        table.init()

    users.insert_into({'name': 'gone', 'posts': [
        {'title': 'a', 'comments': [{'text': 'c1'}, {'text': 'c2'}]},
        {'title': 'b', 'comments': [{'text': 'c3'}]},
    ]})
    kept = users.insert_into({'name': 'kept', 'posts': [{'title': 'c', 'comments': [{'text': 'c4'}]}]})

    assert users.delete_from({'name': 'gone'}) == 1

    assert [comment['text'] for comment in comments.select()] == ['c4']
    assert [post['title'] for post in posts.select()] == ['c']
    assert [user['userId'] for user in users.select()] == [kept]
