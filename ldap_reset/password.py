import secrets
import string

from .errors import GenerationExhaustedError

MIN_LENGTH = 4

# Order matters: one character from each class is placed first
CHARACTER_CLASSES = (
    string.ascii_uppercase,
    string.ascii_lowercase,
    string.digits,
    '@#',
)

# Glyphs that are easy to misread when a password is copied by hand
SIMILAR_CHARS = frozenset('iIl1oO0S5Z2B8G6Q')

_random = secrets.SystemRandom()


def character_classes(exclude_similar=True):
    """Return the four character classes, optionally without look-alike glyphs"""
    if not exclude_similar:
        return CHARACTER_CLASSES
    return tuple(''.join(c for c in chars if c not in SIMILAR_CHARS) for chars in CHARACTER_CLASSES)


def _pick(chars, used, exclude_duplicates):
    pool = [c for c in chars if c not in used] if exclude_duplicates else list(chars)
    if not pool:
        raise GenerationExhaustedError("Not enough unique characters to generate password")
    return secrets.choice(pool)


def generate_password(length=8, exclude_similar=True, exclude_duplicates=True):
    """Generate a random password accepted by Active Directory complexity rules.

    The result always holds at least one uppercase letter, one lowercase
    letter, one digit and one symbol. With ``exclude_duplicates`` no character
    repeats, so ``length`` may not exceed the size of the combined pool.
    """
    if length < MIN_LENGTH:
        raise ValueError(f"Password length must be at least {MIN_LENGTH}, got {length}")

    classes = character_classes(exclude_similar)
    all_chars = ''.join(classes)
    if exclude_duplicates and length > len(all_chars):
        raise GenerationExhaustedError(
            f"Cannot build a {length} character password from {len(all_chars)} unique characters")

    used = set()
    password_chars = []

    for chars in classes:
        char = _pick(chars, used, exclude_duplicates)
        password_chars.append(char)
        used.add(char)

    while len(password_chars) < length:
        char = _pick(all_chars, used, exclude_duplicates)
        password_chars.append(char)
        used.add(char)

    _random.shuffle(password_chars)
    return ''.join(password_chars)


def encode_password(password):
    """Encode a password for a ``unicodePwd`` write: quoted, then UTF-16LE"""
    return f'"{password}"'.encode('utf-16-le')
