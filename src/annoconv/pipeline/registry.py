"""Output format to pipeline registry."""

from __future__ import annotations

from annoconv.config.schema import OutputFormat
from annoconv.export.coco import CocoPipeline
from annoconv.export.labelme import LabelMePipeline
from annoconv.export.yolo import YoloPipeline
from annoconv.pipeline.stage import ConversionPipeline


_PIPELINES: dict[OutputFormat, type] = {
    OutputFormat.YOLO: YoloPipeline,
    OutputFormat.COCO: CocoPipeline,
    OutputFormat.LABELME: LabelMePipeline,
}


def resolve_pipeline(output_format: OutputFormat) -> ConversionPipeline:
    """Return a fresh pipeline instance for one conversion run."""

    try:
        pipeline_cls = _PIPELINES[OutputFormat(output_format)]
    except KeyError:
        raise ValueError(f"Unsupported output format: {output_format}") from None
    return pipeline_cls()
