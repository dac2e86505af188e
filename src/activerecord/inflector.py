"""
Naming helpers used to infer table names, class names and keys.

>>> tableize('Person')
'people'
>>> classify('people', singular=True)
'Person'
>>> keyify('School')
'school_id'
>>> variablize('mixedCaseField')
'mixedcasefield'
"""
import re
from functools import lru_cache

_PLURALS = [
    (r'(quiz)$', r'\1zes'),
    (r'^(oxen)$', r'\1'),
    (r'^(ox)$', r'\1en'),
    (r'([m|l])ice$', r'\1ice'),
    (r'([m|l])ouse$', r'\1ice'),
    (r'(matr|vert|ind)(?:ix|ex)$', r'\1ices'),
    (r'(x|ch|ss|sh)$', r'\1es'),
    (r'([^aeiouy]|qu)y$', r'\1ies'),
    (r'(hive)$', r'\1s'),
    (r'(?:([^f])fe|([lr])f)$', r'\1\2ves'),
    (r'sis$', 'ses'),
    (r'([ti])a$', r'\1a'),
    (r'([ti])um$', r'\1a'),
    (r'(buffal|tomat|potat|ech|her|vet)o$', r'\1oes'),
    (r'(bu)s$', r'\1ses'),
    (r'(alias|status|campus)$', r'\1es'),
    (r'(octop)us$', r'\1i'),
    (r'(ax|test)is$', r'\1es'),
    (r'us$', 'uses'),
    (r's$', 's'),
    (r'$', 's'),
    ]

_SINGULARS = [
    (r'(quiz)zes$', r'\1'),
    (r'(matr)ices$', r'\1ix'),
    (r'(vert|ind)ices$', r'\1ex'),
    (r'^(ox)en$', r'\1'),
    (r'(alias|status|campus)es$', r'\1'),
    (r'(octop|vir)i$', r'\1us'),
    (r'(cris|ax|test)es$', r'\1is'),
    (r'(shoe)s$', r'\1'),
    (r'(o)es$', r'\1'),
    (r'(bus)es$', r'\1'),
    (r'([m|l])ice$', r'\1ouse'),
    (r'(x|ch|ss|sh)es$', r'\1'),
    (r'(m)ovies$', r'\1ovie'),
    (r'(s)eries$', r'\1eries'),
    (r'([^aeiouy]|qu)ies$', r'\1y'),
    (r'([lr])ves$', r'\1f'),
    (r'(tive)s$', r'\1'),
    (r'(hive)s$', r'\1'),
    (r'([^f])ves$', r'\1fe'),
    (r'(^analy)ses$', r'\1sis'),
    (r'((a)naly|(b)a|(d)iagno|(p)arenthe|(p)rogno|(s)ynop|(t)he)ses$', r'\1\2sis'),
    (r'([ti])a$', r'\1um'),
    (r'(n)ews$', r'\1ews'),
    (r'(h|bl)ouses$', r'\1ouse'),
    (r'(corpse)s$', r'\1'),
    (r'(us)es$', r'\1'),
    (r'(ss)$', r'\1'),
    (r's$', ''),
    ]

_IRREGULAR = {
    'move': 'moves',
    'foot': 'feet',
    'goose': 'geese',
    'sex': 'sexes',
    'child': 'children',
    'man': 'men',
    'tooth': 'teeth',
    'person': 'people',
    }

_UNCOUNTABLE = {
    'sheep', 'fish', 'deer', 'series', 'species', 'money', 'rice',
    'information', 'equipment',
    }


def _apply_rules(word: str, rules: list[tuple[str, str]]) -> str:
    for pattern, replacement in rules:
        if re.search(pattern, word, re.IGNORECASE):
            return re.sub(pattern, replacement, word, count=1, flags=re.IGNORECASE)
    return word


def _match_irregular(word: str, table: dict[str, str]) -> str | None:
    lowered = word.lower()
    for source, target in table.items():
        if lowered.endswith(source) and (len(lowered) == len(source)
                                         or not lowered[-len(source) - 1].isalpha()
                                         or source in {'person', 'child'}):
            prefix = word[:len(word) - len(source)]
            return prefix + (target if word[-len(source)].islower() else target.capitalize())
    return None


@lru_cache(maxsize=1024)
def pluralize(word: str) -> str:
    """Return the plural form of an English noun.
    """
    if not word or word.lower() in _UNCOUNTABLE:
        return word
    irregular = _match_irregular(word, _IRREGULAR)
    if irregular is not None:
        return irregular
    return _apply_rules(word, _PLURALS)


@lru_cache(maxsize=1024)
def singularize(word: str) -> str:
    """Return the singular form of an English noun.
    """
    if not word or word.lower() in _UNCOUNTABLE:
        return word
    irregular = _match_irregular(word, {v: k for k, v in _IRREGULAR.items()})
    if irregular is not None:
        return irregular
    return _apply_rules(word, _SINGULARS)


def camelize(word: str) -> str:
    """`book_author` -> `bookAuthor`."""
    parts = re.split(r'[_\s]+', word.strip('_'))
    return parts[0] + ''.join(p[:1].upper() + p[1:] for p in parts[1:])


def underscore(word: str) -> str:
    """`BookAuthor` -> `book_author`."""
    word = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', word)
    word = re.sub(r'([a-z\d])([A-Z])', r'\1_\2', word)
    return word.replace('-', '_').lower()


def denamespace(name: str) -> str:
    """Strip any module path from a class name."""
    return re.split(r'[.:\\]', name)[-1]


def classify(name: str, singular: bool = False) -> str:
    """`book_authors` -> `BookAuthors`, or `BookAuthor` when singularizing."""
    if singular:
        name = singularize(name)
    name = camelize(name)
    return name[:1].upper() + name[1:]


def tableize(class_name: str) -> str:
    """`BookAuthor` -> `book_authors`."""
    return pluralize(underscore(denamespace(class_name)))


def keyify(class_name: str) -> str:
    """Foreign key column for a class: `School` -> `school_id`."""
    return f'{underscore(denamespace(class_name))}_id'


def variablize(name: str) -> str:
    """Normalize a column name into an attribute name."""
    return re.sub(r'[-\s]', '_', name.strip().lower())
