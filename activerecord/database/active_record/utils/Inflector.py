import re

import inflect

p = inflect.engine()


def split_camel_case(word: str) -> str:
    """Split PascalCase or camelCase into space-separated words."""
    return re.sub(r'(?<!^)(?=[A-Z])', ' ', word)


def underscorify(word: str) -> str:
    """AwesomePerson -> awesome_person. Already snake_cased words pass through."""
    spaced = split_camel_case(word.replace("_", " ")).split()
    return "_".join(part.lower() for part in spaced)


def variablize(word: str) -> str:
    """Column or attribute name as a python identifier: "Author Id" -> author_id."""
    return word.strip().lower().replace("-", "_").replace(" ", "_")


def singularize(word: str) -> str:
    parts = word.split("_")
    singular = p.singular_noun(parts[-1])
    if singular:
        parts[-1] = singular
    return "_".join(parts)


def pluralize(word: str) -> str:
    parts = word.split("_")
    parts[-1] = p.plural_noun(parts[-1])
    return "_".join(parts)


def tableize(class_name: str) -> str:
    """Destruction Log -> destruction_logs, AwesomePerson -> awesome_people."""
    return pluralize(underscorify(denamespace(class_name)))


def classify(word: str, singular: bool = False) -> str:
    """awesome_people -> AwesomePeople (or AwesomePerson when singular=True)."""
    word = underscorify(word)
    if singular:
        word = singularize(word)
    return "".join(part.capitalize() for part in word.split("_"))


def keyify(class_name: str) -> str:
    """Foreign key column for a class: AwesomePerson -> awesome_person_id."""
    return f"{underscorify(denamespace(class_name))}_id"


def humanize(attribute: str) -> str:
    """first_name -> First name"""
    text = attribute.replace("_", " ")
    return text[:1].upper() + text[1:]


def denamespace(class_name: str) -> str:
    return class_name.rsplit(".", 1)[-1]
