from .version import __version__  # noqa
from .config import HEDConfig  # noqa
from .pipeline import PipelineResult, runpipeline  # noqa
