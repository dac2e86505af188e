"""
Unit tests for the naming helpers used to infer tables, classes and keys.
"""
import pytest
from activerecord.inflector import camelize, classify, denamespace, keyify
from activerecord.inflector import pluralize, singularize, tableize, underscore
from activerecord.inflector import variablize


@pytest.mark.parametrize(('singular', 'plural'), [
    ('book', 'books'),
    ('person', 'people'),
    ('child', 'children'),
    ('venue', 'venues'),
    ('city', 'cities'),
    ('box', 'boxes'),
    ('status', 'statuses'),
    ('matrix', 'matrices'),
    ('index', 'indices'),
    ('wife', 'wives'),
    ('sheep', 'sheep'),
])
def test_pluralize_and_singularize(singular, plural):
    assert pluralize(singular) == plural
    assert singularize(plural) == singular


def test_singularize_leaves_singular_words_alone():
    assert singularize('position') == 'position'
    assert singularize('address') == 'address'


def test_camelize_and_underscore():
    assert camelize('book_author') == 'bookAuthor'
    assert underscore('BookAuthor') == 'book_author'
    assert underscore('HTMLParser') == 'html_parser'


def test_classify():
    assert classify('book_authors') == 'BookAuthors'
    assert classify('book_authors', singular=True) == 'BookAuthor'
    assert classify('people', singular=True) == 'Person'
    assert classify('author') == 'Author'


def test_tableize_strips_namespaces():
    assert tableize('Person') == 'people'
    assert tableize('BookAuthor') == 'book_authors'
    assert tableize('app.models.Venue') == 'venues'
    assert denamespace('app.models.Venue') == 'Venue'


def test_keyify():
    assert keyify('School') == 'school_id'
    assert keyify('BookAuthor') == 'book_author_id'


def test_variablize():
    assert variablize('mixedCaseField') == 'mixedcasefield'
    assert variablize(' some-Date ') == 'some_date'
