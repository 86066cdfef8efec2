"""
Print the progress records kept in a JSON store file.
"""

import sys

from rewatchkit import JsonFileStorage, ProgressStore, StoredProgressRecord
from rewatchkit.models import is_stored_record


def main():
    path = sys.argv[1] if len(sys.argv) > 1 else "rewatch_progress.json"
    store = ProgressStore(JsonFileStorage(path))

    keys = store.tracked_keys()
    print(f"{len(keys)} tracked entries in {path}")

    entries = store.storage.get(keys)
    for key in keys:
        if not is_stored_record(entries.get(key)):
            continue
        record = StoredProgressRecord.from_dict(entries[key], content_key=key)
        label = record.title
        if record.content_type == "episode":
            label += f" S{record.season_number or '?'}E{record.episode_number or '?'}"
        print(f"{key}: {label} [{record.platform or 'unknown'}] "
              f"{record.percent_complete:.1f}% watched, last {record.last_watched}")


if __name__ == "__main__":
    main()
