import pytest
from activerecord import Config, ConnectionRegistry

from tests.fixtures.models import BaseModel

SCHEMA = """
CREATE TABLE authors (
    author_id INTEGER PRIMARY KEY,
    parent_author_id INT,
    publisher_id INT,
    name VARCHAR(25) NOT NULL DEFAULT 'default_name',
    updated_at DATETIME,
    created_at DATETIME,
    some_Date DATE,
    some_time TIME,
    some_text TEXT,
    encrypted_password VARCHAR(50),
    "mixedCaseField" VARCHAR(50)
);

CREATE TABLE books (
    book_id INTEGER PRIMARY KEY,
    author_id INT,
    secondary_author_id INT,
    name VARCHAR(50),
    numeric_test VARCHAR(10) DEFAULT '0',
    special NUMERIC(10,2) DEFAULT 0 CHECK (special >= 0)
);

CREATE TABLE tags (
    tag_id INTEGER PRIMARY KEY,
    name VARCHAR(25)
);

CREATE TABLE books_tags (
    book_id INT NOT NULL,
    tag_id INT NOT NULL
);

CREATE TABLE venues (
    id INTEGER PRIMARY KEY,
    name VARCHAR(50),
    city VARCHAR(60)
);

CREATE TABLE hosts (
    id INTEGER PRIMARY KEY,
    name VARCHAR(25)
);

CREATE TABLE events (
    id INTEGER PRIMARY KEY,
    venue_id INT,
    host_id INT,
    title VARCHAR(60)
);

CREATE TABLE employees (
    id INTEGER PRIMARY KEY,
    first_name VARCHAR(255)
);

CREATE TABLE positions (
    id INTEGER PRIMARY KEY,
    employee_id INT,
    department_id INT,
    title VARCHAR(255)
);

CREATE TABLE departments (
    id INTEGER PRIMARY KEY,
    name VARCHAR(60)
);

CREATE TABLE shelves (
    room INT NOT NULL,
    slot INT NOT NULL,
    label VARCHAR(20),
    PRIMARY KEY (room, slot)
);

CREATE TABLE volumes (
    id INTEGER PRIMARY KEY,
    shelf_room INT,
    shelf_slot INT,
    title VARCHAR(60)
);

INSERT INTO authors (author_id, parent_author_id, name, created_at, some_Date)
VALUES (1, NULL, 'Tito', '2009-01-01 12:00:00', '2009-01-01');
INSERT INTO authors (author_id, parent_author_id, name) VALUES (2, 1, 'George W. Bush');
INSERT INTO authors (author_id, parent_author_id, name) VALUES (3, 1, 'Bill Clinton');

INSERT INTO books (book_id, author_id, name, special) VALUES (1, 1, 'Ancient Art of Main Tanking', 0);
INSERT INTO books (book_id, author_id, name, special) VALUES (2, 1, 'Another Book', 1.5);
INSERT INTO books (book_id, author_id, name, special) VALUES (3, 2, 'My Presidency', 0);

INSERT INTO tags (tag_id, name) VALUES (1, 'fantasy');
INSERT INTO tags (tag_id, name) VALUES (2, 'humor');
INSERT INTO tags (tag_id, name) VALUES (3, 'politics');

INSERT INTO books_tags (book_id, tag_id) VALUES (1, 1);
INSERT INTO books_tags (book_id, tag_id) VALUES (1, 2);
INSERT INTO books_tags (book_id, tag_id) VALUES (2, 2);
INSERT INTO books_tags (book_id, tag_id) VALUES (3, 3);

INSERT INTO venues (id, name, city) VALUES (1, 'Warner Theatre', 'Washington');
INSERT INTO venues (id, name, city) VALUES (2, 'Hard Rock Cafe', 'Orlando');
INSERT INTO venues (id, name, city) VALUES (3, 'Empty Hall', 'Nowhere');

INSERT INTO hosts (id, name) VALUES (1, 'David Letterman');
INSERT INTO hosts (id, name) VALUES (2, 'Tom Cruise');

INSERT INTO events (id, venue_id, host_id, title) VALUES (1, 1, 1, 'Monday Night Music Club');
INSERT INTO events (id, venue_id, host_id, title) VALUES (2, 1, 2, 'Yeah Yeah Yeahs');
INSERT INTO events (id, venue_id, host_id, title) VALUES (3, 2, 1, 'Love Bites');

INSERT INTO employees (id, first_name) VALUES (1, 'michio');
INSERT INTO employees (id, first_name) VALUES (2, 'jacques');

INSERT INTO departments (id, name) VALUES (1, 'physics');
INSERT INTO departments (id, name) VALUES (2, 'oceanography');

INSERT INTO positions (id, employee_id, department_id, title) VALUES (1, 1, 1, 'physicist');

INSERT INTO shelves (room, slot, label) VALUES (1, 1, 'a');
INSERT INTO shelves (room, slot, label) VALUES (1, 2, 'b');
INSERT INTO shelves (room, slot, label) VALUES (2, 1, 'c');

INSERT INTO volumes (id, shelf_room, shelf_slot, title) VALUES (1, 1, 1, 'Dune');
INSERT INTO volumes (id, shelf_room, shelf_slot, title) VALUES (2, 1, 2, 'Emma');
INSERT INTO volumes (id, shelf_room, shelf_slot, title) VALUES (3, 1, 2, 'Ulysses');
INSERT INTO volumes (id, shelf_room, shelf_slot, title) VALUES (4, 2, 1, 'Walden');
"""


class QueryLog:
    """SQL logger collaborator that records every statement it is given."""

    def __init__(self):
        self.messages = []

    def log(self, message):
        self.messages.append(message)

    @property
    def statements(self):
        return [m for m in self.messages if isinstance(m, str)]

    def clear(self):
        self.messages.clear()


@pytest.fixture
def query_log():
    return QueryLog()


@pytest.fixture
def sqlite_config(query_log):
    return Config(
        connections={'test': 'sqlite://:memory:', 'other': 'sqlite:///:memory:'},
        default_connection='test',
        logger=query_log,
        )


@pytest.fixture
def registry(sqlite_config):
    """Registry with the test schema loaded into the default in-memory database."""
    registry = ConnectionRegistry(sqlite_config)
    adapter = registry.resolve()
    adapter.connection.executescript(SCHEMA)
    BaseModel.connection_registry = registry
    yield registry
    BaseModel.connection_registry = None
    registry.close_all()


@pytest.fixture
def sqlite_adapter(registry, query_log):
    """The default adapter, with the schema setup statements forgotten."""
    query_log.clear()
    return registry.resolve()
