import logging

import pytest
from activerecord import Config, ConnectionRegistry

from tests.fixtures.models import BaseModel

logger = logging.getLogger(__name__)

SCHEMA = """
DROP TABLE IF EXISTS authors, books, tags, books_tags, venues, hosts, events, employees, positions;

CREATE TABLE authors (
    author_id SERIAL PRIMARY KEY,
    parent_author_id INT,
    publisher_id INT,
    name VARCHAR(25) NOT NULL DEFAULT 'default_name',
    updated_at TIMESTAMP,
    created_at TIMESTAMP,
    "some_Date" DATE,
    some_time TIME,
    some_text TEXT,
    encrypted_password VARCHAR(50),
    "mixedCaseField" VARCHAR(50)
);

CREATE TABLE books (
    book_id SERIAL PRIMARY KEY,
    author_id INT,
    secondary_author_id INT,
    name VARCHAR(50),
    numeric_test VARCHAR(10) DEFAULT '0',
    special NUMERIC(10,2) DEFAULT 0
);

CREATE TABLE tags (tag_id SERIAL PRIMARY KEY, name VARCHAR(25));
CREATE TABLE books_tags (book_id INT NOT NULL, tag_id INT NOT NULL);
CREATE TABLE venues (id SERIAL PRIMARY KEY, name VARCHAR(50), city VARCHAR(60));
CREATE TABLE hosts (id SERIAL PRIMARY KEY, name VARCHAR(25));
CREATE TABLE events (id SERIAL PRIMARY KEY, venue_id INT, host_id INT, title VARCHAR(60));
CREATE TABLE employees (id SERIAL PRIMARY KEY, first_name VARCHAR(255));
CREATE TABLE positions (id SERIAL PRIMARY KEY, employee_id INT, title VARCHAR(255));

INSERT INTO authors (name, parent_author_id) VALUES ('Tito', NULL), ('George W. Bush', 1), ('Bill Clinton', 1);
INSERT INTO books (author_id, name, special) VALUES
    (1, 'Ancient Art of Main Tanking', 0), (1, 'Another Book', 1.5), (2, 'My Presidency', 0);
INSERT INTO tags (name) VALUES ('fantasy'), ('humor'), ('politics');
INSERT INTO books_tags (book_id, tag_id) VALUES (1, 1), (1, 2), (2, 2), (3, 3);
INSERT INTO venues (name, city) VALUES ('Warner Theatre', 'Washington'), ('Hard Rock Cafe', 'Orlando');
INSERT INTO hosts (name) VALUES ('David Letterman'), ('Tom Cruise');
INSERT INTO events (venue_id, host_id, title) VALUES
    (1, 1, 'Monday Night Music Club'), (1, 2, 'Yeah Yeah Yeahs'), (2, 1, 'Love Bites');
"""


@pytest.fixture(scope='session')
def psql_docker(request):
    """Session-scoped PostgreSQL container; skips when Docker is unavailable."""
    try:
        from testcontainers.postgres import PostgresContainer
        container = PostgresContainer(image='postgres:16', username='postgres',
                                      password='postgres', dbname='test_db')
        container.start()
    except Exception as e:
        pytest.skip(f'PostgreSQL container unavailable: {e}')

    def finalizer():
        try:
            container.stop()
            logger.info('PostgreSQL container stopped')
        except Exception as e:
            logger.warning(f'Error stopping container: {e}')

    request.addfinalizer(finalizer)
    host = container.get_container_host_ip()
    port = int(container.get_exposed_port(5432))
    logger.info(f'PostgreSQL container started at {host}:{port}')
    return f'postgresql://postgres:postgres@{host}:{port}/test_db'


@pytest.fixture
def pg_registry(psql_docker):
    """Registry on the container with the test schema freshly loaded."""
    registry = ConnectionRegistry(Config(connections={'test': psql_docker}, default_connection='test'))
    adapter = registry.resolve()
    adapter.query(SCHEMA)
    BaseModel.connection_registry = registry
    yield registry
    BaseModel.connection_registry = None
    registry.close_all()


@pytest.fixture
def pg_adapter(pg_registry):
    return pg_registry.resolve()
