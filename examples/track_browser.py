"""
Live browser tracking example.

Opens a page in Chrome through Selenium, follows whatever video plays and
keeps progress in a JSON file so the next visit can offer to resume.
"""

import logging
import sys

from selenium import webdriver

from rewatchkit import JsonFileStorage, ProgressService, ProgressStore
from rewatchkit.runner import BrowserWatcher


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    url = sys.argv[1] if len(sys.argv) > 1 else "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
    frame_selector = sys.argv[2] if len(sys.argv) > 2 else None

    store = ProgressStore(JsonFileStorage("rewatch_progress.json"))
    removed = store.cleanup_old_entries()
    if removed:
        print(f"Removed {len(removed)} finished entries")

    driver = webdriver.Chrome()
    try:
        driver.get(url)

        def offer_resume(offer):
            print(f"Saved position found: {offer.current_time:.0f}s ({offer.percent_complete:.1f}%)")
            watcher.tracker.resume()

        watcher = BrowserWatcher(
            driver,
            ProgressService(store),
            frame_selector=frame_selector,
            resume_handler=offer_resume,
        )
        watcher.run(max_seconds=30 * 60)
    finally:
        driver.quit()


if __name__ == "__main__":
    main()
