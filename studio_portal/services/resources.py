"""
Project Resources

Cleans the link, credential and file lists an editor submits, and seals or opens
credential passwords on their way to and from storage.

Blank rows left behind by the editor are dropped the same way for projects and
sub-projects. Passwords are never stored in plain text.
"""
from datetime import datetime
from typing import Any, List, Optional, Sequence

from studio_portal.core.security import decrypt_secret, encrypt_secret
from studio_portal.models.resources import Credential, Link, ProjectFile, dump_list, parse_list


def clean_links(links: Sequence[Link]) -> List[Link]:
    """Links need both a title and a url."""
    kept = []
    for link in links:
        title, url = link.title.strip(), link.url.strip()
        if title and url:
            kept.append(link.model_copy(update={"title": title, "url": url}))
    return kept


def clean_credentials(credentials: Sequence[Credential]) -> List[Credential]:
    """Credentials are dropped only when every field is blank."""
    return [
        cred for cred in credentials
        if any((value or "").strip() for value in (cred.name, cred.url, cred.username, cred.password))
    ]


def clean_files(files: Sequence[ProjectFile], now: Optional[datetime] = None) -> List[ProjectFile]:
    """Files need a url. A missing name falls back to the url; new files get a timestamp."""
    stamp = (now or datetime.utcnow()).isoformat()
    kept = []
    for item in files:
        url = item.url.strip()
        if not url:
            continue
        kept.append(item.model_copy(update={
            "url": url,
            "name": item.name.strip() or url,
            "created_at": item.created_at or stamp,
        }))
    return kept


def seal_credentials(credentials: Sequence[Credential]) -> List[dict]:
    """Clean a submitted credential list and encrypt its passwords for storage."""
    sealed = [
        cred.model_copy(update={"password": encrypt_secret(cred.password)})
        for cred in clean_credentials(credentials)
    ]
    return dump_list(sealed)


def open_credentials(stored: Any) -> List[Credential]:
    """
    Read a stored credential list with plain-text passwords.

    A password that cannot be decrypted is returned as None.
    """
    return [
        cred.model_copy(update={"password": decrypt_secret(cred.password)})
        for cred in parse_list(Credential, stored)
    ]


def read_links(stored: Any) -> List[dict]:
    return dump_list(parse_list(Link, stored))


def read_files(stored: Any) -> List[dict]:
    return dump_list(parse_list(ProjectFile, stored))
