"""
Lazy association loading, through resolution and association building.
"""
import pytest
from activerecord.exceptions import InvalidThroughAssociation, QueryFailed, RelationshipError
from activerecord.relationships import ThroughState

from tests.fixtures.models import Author, Book, Employee, Event, Host, Position, Tag, Venue


@pytest.fixture(autouse=True)
def _registry(registry):
    return registry


class TestHasMany:

    def test_load(self):
        books = Author.find(1).books
        assert [book.name for book in books] == ['Ancient Art of Main Tanking', 'Another Book']

    def test_load_empty(self):
        assert Author.find(3).books == []

    def test_relationship_options_applied(self):
        assert [book.book_id for book in Author.find(1).recent_books] == [2, 1]

    def test_result_is_cached_on_record(self, query_log):
        author = Author.find(1)
        author.books
        query_log.clear()
        author.books
        assert query_log.statements == []

    def test_unsaved_owner_has_no_dependents(self, query_log):
        author = Author({'name': 'Nobody'})
        Book.table()
        query_log.clear()
        assert author.books == []
        assert query_log.statements == []

    def test_keys_inferred(self):
        relationship = Author.table().get_relationship('books')
        relationship.set_keys(Author)
        assert relationship.foreign_key == ['author_id']
        assert relationship.primary_key == ['author_id']


class TestHasOne:

    def test_load(self):
        assert Employee.find(1).position.title == 'physicist'

    def test_load_missing(self):
        assert Employee.find(2).position is None


class TestBelongsTo:

    def test_load(self):
        assert Book.find(3).author.name == 'George W. Bush'

    def test_explicit_foreign_key(self):
        assert Author.find(2).parent_author.name == 'Tito'

    def test_null_foreign_key(self, query_log):
        author = Author.find(1)
        query_log.clear()
        assert author.parent_author is None
        assert query_log.statements == []


class TestHasAndBelongsToMany:

    def test_load(self):
        assert [tag.name for tag in Book.find(1).tags] == ['fantasy', 'humor']

    def test_reverse(self):
        assert sorted(book.book_id for book in Tag.find(2).books) == [1, 2]

    def test_join_table_default(self):
        assert Book.table().get_relationship('tags').join_table == 'books_tags'

    def test_create_links_join_table(self):
        book = Book.find(3)
        tag = book.create_tags({'name': 'memoir'})
        assert tag.tag_id is not None
        assert [t.name for t in book.tags] == ['politics', 'memoir']


class TestThrough:

    def test_has_many_through_has_many(self):
        assert [host.name for host in Venue.find(1).hosts] == ['David Letterman', 'Tom Cruise']

    def test_reverse_through(self):
        assert [venue.name for venue in Host.find(1).venues] == ['Warner Theatre', 'Hard Rock Cafe']

    def test_through_with_no_bridge_rows(self):
        assert Venue.find(3).hosts == []

    def test_state_becomes_initialized(self):
        relationship = Venue.table().get_relationship('hosts')
        assert relationship.through_state is ThroughState.UNINITIALIZED
        Venue.find(1).hosts
        assert relationship.through_state is ThroughState.INITIALIZED

    def test_keys_restored_after_resolution(self):
        relationship = Venue.table().get_relationship('hosts')
        Venue.find(1).hosts
        assert relationship.foreign_key == []
        assert relationship.primary_key == []

    def test_missing_bridge(self):
        venue = Venue.find(1)
        with pytest.raises(InvalidThroughAssociation):
            venue.ghosts
        relationship = Venue.table().get_relationship('ghosts')
        assert relationship.through_state is ThroughState.UNINITIALIZED
        with pytest.raises(InvalidThroughAssociation):
            venue.ghosts

    def test_bridge_cannot_be_through(self):
        with pytest.raises(InvalidThroughAssociation):
            Venue.find(1).via_hosts

    def test_has_one_bridge(self):
        assert [department.name for department in Employee.find(1).departments] == ['physics']

    def test_has_one_bridge_without_row(self):
        assert Employee.find(2).departments == []

    def test_inner_join(self):
        venues = Venue.find('all', joins=['hosts'], conditions=['hosts.name = ?', 'Tom Cruise'])
        assert [venue.id for venue in venues] == [1]

    def test_cannot_build_through(self):
        with pytest.raises(RelationshipError):
            Venue.find(1).build_hosts({'name': 'x'})


class TestJoins:

    def test_has_many_join(self):
        authors = Author.find('all', joins=['books'], conditions=['books.name = ?', 'My Presidency'])
        assert [author.name for author in authors] == ['George W. Bush']

    def test_belongs_to_join(self):
        books = Book.find('all', joins=['author'], conditions={'authors.name': 'Tito'}, order='book_id')
        assert [book.book_id for book in books] == [1, 2]

    def test_habtm_join(self):
        books = Book.find('all', joins=['tags'], conditions={'tags.name': 'humor'}, order='books.book_id')
        assert [book.book_id for book in books] == [1, 2]

    def test_raw_join_string(self):
        events = Event.find('all', joins='INNER JOIN hosts ON(hosts.id = events.host_id)',
                            conditions="hosts.name = 'Tom Cruise'")
        assert [event.title for event in events] == ['Yeah Yeah Yeahs']


class TestBuildAndCreate:

    def test_build_sets_foreign_key(self):
        author = Author.find(1)
        book = author.build_books({'name': 'Draft'})
        assert book.is_new_record()
        assert book.author_id == 1
        assert book.name == 'Draft'

    def test_guarded_build_keeps_foreign_key(self):
        book = Author.find(1).build_books({'name': 'Draft', 'author_id': 3})
        assert book.author_id == 1

    def test_singular_helper_name(self):
        assert Author.find(1).build_book({'name': 'Draft'}).author_id == 1

    def test_create_persists(self):
        author = Author.find(2)
        author.books
        book = author.create_books({'name': 'Decision Points'})
        assert not book.is_new_record()
        assert Book.find(book.book_id).author_id == 2
        assert [b.name for b in author.books] == ['My Presidency', 'Decision Points']

    def test_create_failure_propagates(self):
        author = Author.find(1)
        with pytest.raises(QueryFailed):
            author.create_books({'name': 'Negative', 'special': -1})
        assert Book.count(conditions={'name': 'Negative'}) == 0

    def test_has_one_build(self):
        position = Employee.find(2).build_position({'title': 'diver'})
        assert isinstance(position, Position)
        assert position.employee_id == 2

    def test_belongs_to_create(self):
        book = Book.find(1)
        author = book.create_author({'name': 'New Author'})
        assert book.author_id == author.author_id
        assert book.author is author
        book.save()
        assert Book.find(1).author_id == author.author_id

    def test_unknown_association_helper(self):
        with pytest.raises(AttributeError):
            Author.find(1).build_nothing
