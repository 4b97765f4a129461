"""
Run the transform chain over every source image with a pool of threads.

Why this module exists:
- Pages are independent, so they are transformed and encoded in parallel.
- Results arrive in any order; the final list is ordered by (id, part), never
  by arrival.
- Raw buffers are released as soon as they are persisted, except the cover,
  which is kept for the cover and title pages.

Threads and queues:
- feeder: pulls tasks from the source iterator into a bounded task queue, then
  sends one stop marker per worker.
- workers: transform, persist, push pages into a bounded output queue.
- closer: joins every worker, closes the storage, then posts the end marker.
  The consumer (caller thread) drains the output queue up to that marker, so
  no page emitted by a late worker can be lost.
"""

from __future__ import annotations

import queue
import threading
from typing import Iterable, Iterator, List, Optional, Protocol

from PIL import Image

from .config import ConvertOptions
from .manifest import ManifestRecorder
from .model import PageImage, Task, sort_key
from .transform import transform_image
from .utils import NoImagesFoundError, PipelineError, UserError, workers_ratio


_STOP = object()
_DONE = object()


class StorageWriter(Protocol):
    """Where persisted pages go. Must accept concurrent `add` calls."""

    def add(self, name: str, image: Image.Image, quality: int) -> None: ...

    def close(self) -> None: ...


class ImageProcessor:
    """Transform, persist and assemble the ordered page list."""

    def __init__(
        self,
        options: ConvertOptions,
        storage: Optional[StorageWriter],
        recorder: ManifestRecorder,
    ) -> None:
        self.options = options
        self.storage = storage
        self.recorder = recorder
        self._errors: List[PipelineError] = []
        self._errors_lock = threading.Lock()
        self._abort = threading.Event()

    @property
    def worker_count(self) -> int:
        return workers_ratio(self.options.workers, self.options.workers_pct())

    def load(self, tasks: Iterable[Task], count: int) -> List[PageImage]:
        """
        Transform every task and return the kept pages sorted by (id, part).

        Raises PipelineError on the first worker failure and
        NoImagesFoundError when nothing is left after blank filtering.
        """

        if self.options.dry_run:
            return self._dry_run(tasks)
        if self.storage is None:
            raise UserError("An image storage is required outside dry-run.")

        self._errors = []
        self._abort.clear()
        worker_count = self.worker_count
        task_queue: queue.Queue = queue.Queue(maxsize=worker_count * 2)
        output_queue: queue.Queue = queue.Queue(maxsize=worker_count * 2)

        self.recorder.log(f"Processing {count} image(s) with {worker_count} worker(s).")

        feeder = threading.Thread(
            target=self._feed,
            args=(tasks, task_queue, worker_count),
            name="comic-paginator-feeder",
            daemon=True,
        )
        workers = [
            threading.Thread(
                target=self._work,
                args=(task_queue, output_queue),
                name=f"comic-paginator-worker-{index}",
                daemon=True,
            )
            for index in range(worker_count)
        ]
        closer = threading.Thread(
            target=self._close_when_done,
            args=(workers, output_queue),
            name="comic-paginator-closer",
            daemon=True,
        )

        feeder.start()
        for worker in workers:
            worker.start()
        closer.start()

        pages: List[PageImage] = []
        seen_ids = set()
        while True:
            item = output_queue.get()
            if item is _DONE:
                break
            page: PageImage = item
            if page.id not in seen_ids:
                seen_ids.add(page.id)
                self.recorder.log(f"Processed {len(seen_ids)}/{count}: {page.name}", level="debug")
            if self.options.no_blank_image and page.is_blank:
                self.recorder.add_action(
                    action="page", status="dropped", id=page.id, part=page.part,
                    name=page.name, reason="blank",
                )
                continue
            pages.append(page)

        feeder.join()
        closer.join()

        if self._errors:
            raise self._errors[0]
        if not pages:
            raise NoImagesFoundError()

        pages.sort(key=sort_key)
        return pages

    def _fail(self, error: PipelineError) -> None:
        with self._errors_lock:
            self._errors.append(error)
        self._abort.set()

    def _feed(self, tasks: Iterable[Task], task_queue: queue.Queue, worker_count: int) -> None:
        try:
            for task in tasks:
                if self._abort.is_set():
                    break
                task_queue.put(task)
        except UserError as exc:
            self._fail(PipelineError(str(exc)))
        except Exception as exc:  # pragma: no cover - loader/codec errors
            self._fail(PipelineError(f"Failed to read source images: {exc}"))
        finally:
            for _ in range(worker_count):
                task_queue.put(_STOP)

    def _work(self, task_queue: queue.Queue, output_queue: queue.Queue) -> None:
        while True:
            task = task_queue.get()
            if task is _STOP:
                return
            if self._abort.is_set():
                # Keep draining so the feeder never blocks on a full queue.
                continue
            try:
                for page in self._process(task):
                    output_queue.put(page)
            except Exception as exc:
                self._fail(PipelineError(f"error with {task.name}: {exc}"))

    def _close_when_done(self, workers: List[threading.Thread], output_queue: queue.Queue) -> None:
        for worker in workers:
            worker.join()
        try:
            self.storage.close()
        except Exception as exc:  # pragma: no cover - filesystem errors
            self._fail(PipelineError(f"Failed to close image storage: {exc}"))
        finally:
            output_queue.put(_DONE)

    def _persist(self, page: PageImage) -> None:
        self.storage.add(page.epub_img_path, page.image, self.options.quality)
        self.recorder.add_action(
            action="page",
            status="written",
            id=page.id,
            part=page.part,
            name=page.name,
            size=[page.width, page.height],
            double_page=page.is_double_page,
            blank=page.is_blank,
            output=page.epub_img_path,
        )

    def _process(self, task: Task) -> Iterator[PageImage]:
        """Yield the persisted variants of one task: whole page and/or its halves."""

        opts = self.options
        page = transform_image(task, 0, opts.manga, opts)

        withhold = (
            page.is_double_page
            and page.id > 0
            and opts.auto_split_double_page
            and not opts.keep_double_page_if_split
        )
        if withhold:
            self.recorder.add_action(
                action="page", status="withheld", id=page.id, part=0, name=page.name,
                reason="double page replaced by its halves",
            )
        else:
            self._persist(page)
            if page.id > 0:
                page.release()
            yield page

        if (
            not opts.auto_split_double_page
            or not page.is_double_page
            or (opts.has_cover and page.id == 0)
        ):
            return

        for part, right in ((1, opts.manga), (2, not opts.manga)):
            half = transform_image(task, part, right, opts)
            self._persist(half)
            half.release()
            yield half

    def _dry_run(self, tasks: Iterable[Task]) -> List[PageImage]:
        pages = [
            PageImage(id=task.index, part=0, name=task.name, format=self.options.image_format)
            for task in tasks
        ]
        for page in pages:
            self.recorder.add_action(action="page", status="dry-run", id=page.id, name=page.name)
        pages.sort(key=sort_key)
        return pages
