"""Missing-track report - turns a cached missing list into a CSV download."""

import csv
import io

from tunebridge.domain.entities import MissingEntry

CSV_HEADER = ["Playlist", "Artist", "Album", "Title"]


def _sort_key(entry: MissingEntry) -> tuple[str, str, str]:
    return (entry.artist.casefold(), (entry.album or "").casefold(), entry.title.casefold())


def build_missing_csv(playlist_name: str, entries: list[str]) -> bytes:
    """Render missing entries as a ';'-separated UTF-8 CSV.

    Args:
        playlist_name: Export name the entries belong to (first column)
        entries: Formatted "Artist — [Album — ]Title" strings

    Returns:
        CSV bytes with header row, sorted by artist, album, title
    """
    parsed = sorted((MissingEntry.parse(e) for e in entries if e and e.strip()), key=_sort_key)

    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=";", lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for entry in parsed:
        writer.writerow([playlist_name, entry.artist, entry.album or "", entry.title])
    return buffer.getvalue().encode("utf-8")


def csv_filename(playlist_name: str) -> str:
    """Download filename for a playlist's missing report."""
    safe = "".join(c if c.isalnum() or c in " -_" else "_" for c in playlist_name).strip()
    return f"{safe or 'playlist'}_missing.csv"
