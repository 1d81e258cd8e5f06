"""Document metadata for pdfmassage."""

from dataclasses import dataclass

from pdfmassage.config import Unit
from pdfmassage.exceptions import InvalidDocumentError


@dataclass(frozen=True)
class MetaData:
    """Type and size of a document, taken from its first page.

    Width and length are in the unit the parser was given (inches by
    default). Pages of a non-uniform document may differ from the first.
    """

    file_type: str
    width: float
    length: float
    page_count: int


def parse_identify_output(output: str, unit: Unit = Unit.INCHES) -> MetaData:
    """
    Parse the output of ``identify -format "%m,%[fx:w],%[fx:h],%n,"``.

    identify prints one record per frame, so a multi-page PDF produces
    ``PDF,612,792,3,PDF,612,792,3,PDF,612,792,3,``. Only the first record is
    used; the trailing comma is tolerated.

    identify rasterizes PDFs at 72 dpi unless told otherwise, so the raw
    width and height are PDF points and are converted to ``unit``.

    Args:
        output: Text printed by identify on stdout
        unit: Unit for width and length

    Returns:
        MetaData for the first page

    Raises:
        InvalidDocumentError: Output does not hold a complete record
    """
    fields = [f.strip() for f in output.strip().split(",")]
    if len(fields) < 4 or not fields[0]:
        raise InvalidDocumentError(context={"output": output.strip()[:100]})

    try:
        width = float(fields[1])
        length = float(fields[2])
        page_count = int(float(fields[3]))
    except ValueError as e:
        raise InvalidDocumentError(context={"output": output.strip()[:100]}) from e

    points = Unit(unit).points
    return MetaData(
        file_type=fields[0].upper(),
        width=width / points,
        length=length / points,
        page_count=page_count,
    )


def calculate_dpi(in_width: float, in_length: float, out_width: float, out_length: float) -> float:
    """
    Work out the DPI that maps an input size onto an output size.

    If the aspect ratios match the lengths decide it, otherwise the input
    width is fitted to the output length (the output is the input turned a
    quarter).

    Args:
        in_width: Input width, in pixels or points
        in_length: Input length, in pixels or points
        out_width: Output width, in inches
        out_length: Output length, in inches

    Returns:
        Dots per inch
    """
    if in_width / in_length == out_width / out_length:
        return in_length / out_length
    return in_width / out_length
