"""Collection of imported drawings.

SVGManager is the only mutator of its drawings. Drawings are stored densely
with an id-to-index map; callers get immutable Drawing values back and
change placement through the manager.
"""

import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .drawing import DEFAULT_ROTATION, DEFAULT_SCALE, Drawing, Placement
from .exceptions import EmptyDocumentError
from .path_processor import QUALITY_SAMPLE_RATE, Polyline
from .svg import SVGDocument, SVGLoadResult

# Set up logging
logger = logging.getLogger(__name__)

BED_CENTER_FACTOR = 0.5
DEFAULT_BED_SIZE = 256.0
DEFAULT_BED_MARGIN = 0.9


class SVGManager:
    """Manages imported drawings and their placement on the bed."""

    def __init__(self, bed_width: float = DEFAULT_BED_SIZE, bed_height: float = DEFAULT_BED_SIZE,
                 default_rotation: float = DEFAULT_ROTATION):
        """Initialize an empty collection.

        Args:
            bed_width: Bed width in mm
            bed_height: Bed height in mm
            default_rotation: Rotation given to newly added drawings
        """
        self.bed_width = bed_width
        self.bed_height = bed_height
        self.default_rotation = default_rotation
        self.selected_id: Optional[str] = None
        self._drawings: List[Drawing] = []
        self._index: Dict[str, int] = {}
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._drawings)

    def __iter__(self) -> Iterator[Drawing]:
        return iter(list(self._drawings))

    def __contains__(self, drawing_id: str) -> bool:
        return drawing_id in self._index

    def get(self, drawing_id: Optional[str]) -> Optional[Drawing]:
        index = self._index.get(drawing_id)
        return self._drawings[index] if index is not None else None

    def _store(self, drawing: Drawing) -> None:
        self._drawings[self._index[drawing.id]] = drawing

    def _reindex(self) -> None:
        self._index = {d.id: i for i, d in enumerate(self._drawings)}

    def _new_id(self) -> str:
        drawing_id = f"svg_{self._next_id}"
        while drawing_id in self._index:
            self._next_id += 1
            drawing_id = f"svg_{self._next_id}"
        self._next_id += 1
        return drawing_id

    # -------------------------
    # Import
    # -------------------------
    def fit_scale(self, result: SVGLoadResult, margin: float = DEFAULT_BED_MARGIN) -> float:
        """User scale that fits a drawing inside the bed with a margin.

        Args:
            result: Loaded SVG data
            margin: Fraction of the bed to fill

        Returns:
            Scale factor, or the default scale for zero-size drawings
        """
        width_mm = result.bounds.width * result.mm_scale
        height_mm = result.bounds.height * result.mm_scale
        candidates = []
        if width_mm > 0:
            candidates.append(self.bed_width * margin / width_mm)
        if height_mm > 0:
            candidates.append(self.bed_height * margin / height_mm)
        return min(candidates) if candidates else DEFAULT_SCALE

    def add_svg(self, filename: str, result: SVGLoadResult, initial_scale: float = DEFAULT_SCALE,
                drawing_id: Optional[str] = None) -> str:
        """Add loaded SVG data as a new drawing centered on the bed.

        Args:
            filename: Original filename
            result: Loaded SVG data
            initial_scale: Initial user scale
            drawing_id: Id to reuse (when restoring a project), else generated

        Returns:
            Id of the new drawing, which also becomes selected
        """
        if drawing_id is None or drawing_id in self._index:
            drawing_id = self._new_id()

        placement = Placement(
            translation=(self.bed_width * BED_CENTER_FACTOR, self.bed_height * BED_CENTER_FACTOR),
            scale=initial_scale,
            rotation=self.default_rotation,
            visible=True,
        )
        drawing = Drawing(
            id=drawing_id,
            filename=filename,
            polylines=result.polylines,
            bounds=result.bounds,
            scale_factor=result.scale_factor,
            viewbox=result.viewbox,
            placement=placement,
        )
        self._drawings.append(drawing)
        self._index[drawing_id] = len(self._drawings) - 1
        self.selected_id = drawing_id
        logger.info(f"Added drawing {drawing_id} ({filename}) with {len(result.polylines)} polylines")
        return drawing_id

    def import_svg(self, content: Union[str, bytes], filename: str = "<string>", flip_y: bool = False,
                   samples_per_unit: float = QUALITY_SAMPLE_RATE, fit_to_bed: bool = False,
                   initial_scale: float = DEFAULT_SCALE, margin: float = DEFAULT_BED_MARGIN) -> str:
        """Parse SVG text and add it as a drawing.

        Args:
            content: SVG document text
            filename: Name shown for the drawing
            flip_y: Flip the Y axis
            samples_per_unit: Sampling density
            fit_to_bed: Scale the drawing to fit the bed
            initial_scale: User scale when not fitting
            margin: Fraction of the bed to fill when fitting

        Returns:
            Id of the new drawing

        Raises:
            SVGParseError: The text is not well-formed SVG
            EmptyDocumentError: The document has no drawable paths
        """
        result = SVGDocument(content, filename).process(flip_y, samples_per_unit)
        if not result.polylines:
            raise EmptyDocumentError(filename)
        scale = self.fit_scale(result, margin) if fit_to_bed else initial_scale
        return self.add_svg(filename, result, scale)

    def import_file(self, file_path: Union[str, Path], **kwargs) -> str:
        """Read an SVG file and add it as a drawing."""
        path = Path(file_path)
        return self.import_svg(path.read_bytes(), filename=path.name, **kwargs)

    def restore(self, drawing: Drawing) -> str:
        """Insert a previously serialized drawing, keeping its placement."""
        drawing_id = drawing.id
        if drawing_id in self._index:
            drawing_id = self._new_id()
        self._next_id = max(self._next_id, _id_number(drawing_id) + 1)
        self._drawings.append(Drawing(
            id=drawing_id,
            filename=drawing.filename,
            polylines=drawing.polylines,
            bounds=drawing.bounds,
            scale_factor=drawing.scale_factor,
            viewbox=drawing.viewbox,
            placement=drawing.placement,
        ))
        self._index[drawing_id] = len(self._drawings) - 1
        return drawing_id

    # -------------------------
    # Mutation
    # -------------------------
    def remove_svg(self, drawing_id: str) -> None:
        if drawing_id not in self._index:
            return
        del self._drawings[self._index[drawing_id]]
        self._reindex()
        if self.selected_id == drawing_id:
            self.selected_id = None

    def clear(self) -> None:
        self._drawings = []
        self._index = {}
        self.selected_id = None

    def select_svg(self, drawing_id: Optional[str]) -> None:
        self.selected_id = drawing_id if drawing_id in self._index else None

    def get_selected_svg(self) -> Optional[Drawing]:
        return self.get(self.selected_id)

    def update_transformation(self, drawing_id: str, translation: Tuple[float, float],
                              scale: float, rotation: float) -> None:
        """Set a drawing's translation, scale and rotation together."""
        drawing = self.get(drawing_id)
        if drawing is None:
            return
        self._store(drawing.with_placement(
            translation=(float(translation[0]), float(translation[1])),
            scale=float(scale),
            rotation=float(rotation),
        ))

    def set_placement(self, drawing_id: str, placement: Placement) -> None:
        drawing = self.get(drawing_id)
        if drawing is not None:
            self._store(drawing.with_placement(**vars(placement)))

    def toggle_visibility(self, drawing_id: str) -> None:
        drawing = self.get(drawing_id)
        if drawing is not None:
            self._store(drawing.with_placement(visible=not drawing.placement.visible))

    def set_bed_size(self, width: float, height: float) -> None:
        self.bed_width = width
        self.bed_height = height

    # -------------------------
    # Output
    # -------------------------
    def get_transformed_polylines(self, drawing_id: str) -> List[Polyline]:
        drawing = self.get(drawing_id)
        return drawing.transformed_polylines() if drawing else []

    def get_all_polylines(self) -> List[Polyline]:
        """Bed-space polylines of all visible drawings, in insertion order."""
        polylines: List[Polyline] = []
        for drawing in self._drawings:
            if drawing.placement.visible:
                polylines.extend(drawing.transformed_polylines())
        return polylines

    def get_all_svgs_with_polylines(self) -> List[dict]:
        return [
            {
                "id": d.id,
                "filename": d.filename,
                "polylines": d.transformed_polylines(),
                "visible": d.placement.visible,
            }
            for d in self._drawings
        ]


def _id_number(drawing_id: str) -> int:
    try:
        return int(drawing_id.rsplit("_", 1)[-1])
    except ValueError:
        return 0
