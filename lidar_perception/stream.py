import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence, Union

from lidar_perception.data_loader import PathLike, discover_frames, load_frame
from lidar_perception.errors import FrameErrorPolicy, FrameLoadError
from lidar_perception.point_cloud import PointCloud

logger = logging.getLogger(__name__)

FrameSource = Union[Path, PointCloud]


@dataclass
class Frame:
    index: int
    cloud: PointCloud
    source: Optional[str] = None


class FrameStream:
    """
    Ordered, endlessly cycling sequence of raw point clouds.

    Sources are file paths (loaded on demand) or in-memory clouds. Index i
    maps to source i % len; iteration wraps back to the first frame after
    the last one.
    """

    def __init__(
        self,
        sources: Sequence[FrameSource],
        loader: Callable[[PathLike], PointCloud] = load_frame,
        on_error: Union[str, FrameErrorPolicy] = FrameErrorPolicy.SKIP,
    ):
        self.sources: List[FrameSource] = list(sources)
        self.loader = loader
        self.on_error = FrameErrorPolicy(on_error)
        self.position = 0

    @classmethod
    def from_directory(cls, directory: PathLike, **kwargs) -> "FrameStream":
        paths = discover_frames(directory)
        if not paths:
            raise FrameLoadError(f"No frame files found in {directory}", context=str(directory))
        logger.info("Discovered %d frames in %s", len(paths), directory)
        return cls(paths, **kwargs)

    @classmethod
    def from_clouds(cls, clouds: Sequence[PointCloud], **kwargs) -> "FrameStream":
        return cls(list(clouds), **kwargs)

    def __len__(self) -> int:
        return len(self.sources)

    def _load(self, index: int) -> Frame:
        source = self.sources[index]
        if isinstance(source, PointCloud):
            return Frame(index=index, cloud=source)
        return Frame(index=index, cloud=self.loader(source), source=str(source))

    def __getitem__(self, index: int) -> Frame:
        """Load frame `index % len`; load errors always propagate here."""
        if not self.sources:
            raise IndexError("FrameStream is empty")
        return self._load(index % len(self.sources))

    def next_frame(self) -> Frame:
        """
        Return the frame at the cursor and advance it, wrapping at the end.

        Under the skip policy unreadable frames are logged and passed over; a
        full cycle of failures raises FrameLoadError.
        """
        if not self.sources:
            raise FrameLoadError("FrameStream has no sources")

        failures = 0
        while True:
            index = self.position
            self.position = (self.position + 1) % len(self.sources)
            try:
                return self._load(index)
            except FrameLoadError as e:
                if self.on_error is FrameErrorPolicy.RAISE:
                    raise
                failures += 1
                logger.warning("Skipping frame %d: %s", index, e)
                if failures >= len(self.sources):
                    raise FrameLoadError(
                        f"All {len(self.sources)} frames failed to load", context=e.context
                    ) from e

    def rewind(self) -> None:
        self.position = 0

    def __iter__(self) -> Iterator[Frame]:
        while True:
            yield self.next_frame()
