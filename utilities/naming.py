import re

import inflect
from slugify import slugify

p = inflect.engine()


def split_camel_case(word: str) -> str:
    """Split PascalCase or camelCase into space-separated words."""
    return re.sub(r'(?<!^)(?=[A-Z])', ' ', word)


def to_pascal_case(phrase: str) -> str:
    return ''.join(word.capitalize() for word in phrase.split())


def to_snake_case(phrase: str) -> str:
    return '_'.join(word.lower() for word in phrase.split())


def transform_word(raw_word: str) -> dict[str, str]:
    spaced = split_camel_case(raw_word).replace("_", " ")  # e.g. "Destruction Log"
    plural_spaced = p.plural(spaced.lower())  # e.g. "destruction logs"

    return {
        "title_singular": spaced.title(),  # Destruction Log
        "title_plural": plural_spaced.title(),  # Destruction Logs
        "slug_singular": slugify(spaced),  # destruction-log
        "slug_plural": slugify(plural_spaced),  # destruction-logs
        "pascal_singular": to_pascal_case(spaced),  # DestructionLog
        "pascal_plural": to_pascal_case(plural_spaced),  # DestructionLogs
        "snake_singular": to_snake_case(spaced),  # destruction_log
        "snake_plural": to_snake_case(plural_spaced),  # destruction_logs
    }


def singular(table: str) -> str:
    """users -> user, user_contacts -> user_contact; already singular names pass through."""
    head, _, last = table.rpartition("_")
    last_singular = p.singular_noun(last) or last
    return f"{head}_{last_singular}" if head else last_singular


def foreign_key_for(table: str) -> str:
    return f"{singular(table)}_id"


def table_name_for(model_name: str) -> str:
    """UserContact -> user_contacts"""
    return transform_word(model_name)["snake_plural"]
