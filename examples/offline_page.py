"""
Offline tracking example.

Drives a tracker against static HTML: playback is simulated by changing the
video's media state and advancing a manual clock.
"""

from rewatchkit import (
    LocalProgressChannel,
    ManualScheduler,
    ProgressService,
    ProgressStore,
    SessionTracker,
    SoupDocument,
    TrackerConfig,
)

PAGE = """
<html>
<head><meta property="og:title" content="Perfect Days"></head>
<body>
  <div class="video-player">
    <video src="https://cdn.example.com/perfect-days.mp4" width="1280" height="720"
           data-ready-state="4" data-duration="7440"></video>
  </div>
</body>
</html>
"""


def main():
    page = SoupDocument(PAGE, url="https://example.com/watch/perfect-days")
    scheduler = ManualScheduler()
    store = ProgressStore()

    # example.com is not a known platform, so accept any source
    tracker = SessionTracker(
        page,
        scheduler,
        LocalProgressChannel(ProgressService(store)),
        config=TrackerConfig(supported_platforms=None),
    )
    tracker.start()
    print(f"Tracker state: {tracker.state.value}")

    video = tracker.video
    video.update_media(paused=False, current_time=1800.0)
    video.dispatch_event("play")

    for _ in range(3):
        video.update_media(current_time=video.current_time + 5)
        scheduler.advance(5)

    video.update_media(paused=True)
    video.dispatch_event("pause")

    record = store.get_progress(page.url)
    print(f"Saved '{record['title']}' at {record['currentTime']:.0f}s "
          f"({record['percentComplete']:.1f}%)")


if __name__ == "__main__":
    main()
