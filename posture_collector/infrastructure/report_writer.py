"""Write posture reports as JSON."""
import json
import logging
import sys
from typing import Optional, TextIO
from posture_collector.domain.models import PostureReport


logger = logging.getLogger(__name__)


def report_to_json(report: PostureReport) -> str:
    """Serialize a report; unknown values are written as null."""
    return json.dumps(report.to_dict(), indent=2)


def write_report(
    report: PostureReport,
    output_file: Optional[str] = None,
    stream: Optional[TextIO] = None
) -> None:
    """Write a report to a file, or to a stream when no file is given.

    Args:
        report: Report to write
        output_file: Path to the output JSON file
        stream: Stream used when output_file is None, defaults to stdout
    """
    content = report_to_json(report)

    if output_file:
        with open(output_file, 'w', encoding='utf-8') as f:
            f.write(content)
            f.write("\n")
        logger.info(f"Wrote posture report for {report.organization} to {output_file}")
        return

    out = stream if stream is not None else sys.stdout
    out.write(content)
    out.write("\n")
