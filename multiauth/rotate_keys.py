"""
Rotate the HS256 secrets in an application's config file.

Generates a new random 64-character secret and writes it over the
``JWT_ACCESS_SECRET_KEY`` and ``JWT_REFRESH_SECRET_KEY`` assignments of a
Python config file (the kind loaded with ``app.config.from_pyfile``):

.. code-block:: bash

   $ multiauth-rotate-keys instance/config.py
   Rotated JWT_ACCESS_SECRET_KEY, JWT_REFRESH_SECRET_KEY

Every token signed with the old secrets stops verifying once the application
is restarted with the new ones. Pass ``--distinct`` to give the access and
refresh entries different secrets.
"""

import re
import secrets
import string
from typing import Dict, Iterable

import click

SECRET_LENGTH = 64
ALPHABET = string.ascii_letters + string.digits
ENTRIES = ('JWT_ACCESS_SECRET_KEY', 'JWT_REFRESH_SECRET_KEY')


def generate_secret(length: int = SECRET_LENGTH) -> str:
    """Generate a random alphanumeric secret."""
    return ''.join(secrets.choice(ALPHABET) for _ in range(length))


def _pattern(name: str) -> 're.Pattern[str]':
    return re.compile(
        rf'^(?P<lead>\s*{name}\s*=\s*)(?P<quote>[\'"]).*?(?P=quote)',
        re.MULTILINE
    )


def rewrite_secrets(source: str, values: Dict[str, str]) -> str:
    """
    Replace the string assigned to each entry in ``values``.

    Raises
    ------
    KeyError
        An entry has no string assignment in ``source``.

    """
    for name, value in values.items():
        source, count = _pattern(name).subn(
            lambda m: f"{m.group('lead')}{m.group('quote')}{value}"
                      f"{m.group('quote')}",
            source
        )
        if count == 0:
            raise KeyError(name)
    return source


def new_secrets(entries: Iterable[str], distinct: bool) -> Dict[str, str]:
    """Pick the new secret for each entry."""
    if distinct:
        return {name: generate_secret() for name in entries}
    shared = generate_secret()
    return {name: shared for name in entries}


@click.command()
@click.argument('config_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--distinct', is_flag=True, default=False,
              help='Use different secrets for access and refresh tokens.')
def rotate_keys(config_file: str, distinct: bool = False) -> None:
    """Write new JWT secrets into CONFIG_FILE."""
    with open(config_file, encoding='utf-8') as f:
        source = f.read()
    try:
        source = rewrite_secrets(source, new_secrets(ENTRIES, distinct))
    except KeyError as e:
        raise click.ClickException(f'{e.args[0]} is not assigned in '
                                   f'{config_file}') from e
    with open(config_file, 'w', encoding='utf-8') as f:
        f.write(source)
    click.echo(f'Rotated {", ".join(ENTRIES)}')


if __name__ == '__main__':
    rotate_keys()
