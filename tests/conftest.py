import io
import sys
from pathlib import Path

import pytest
from PIL import Image

# Ensure project root is on sys.path so `import tap_slides` works
project_root = Path(__file__).resolve().parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from tap_slides.errors import ErrorType, ImageGenerationError  # noqa: E402
from tap_slides.models import GeneratedImage  # noqa: E402


SAMPLE_PRESENTATION = """---
title: Demo
theme: noir
---
# Intro

Welcome to the demo.

---

# Architecture

<!-- ai-prompt: a diagram of servers -->
![](images/old.png)

```yaml
key: value
---
other: value
```

---

# Closing
"""


def make_png(width: int = 4, height: int = 3, color=(255, 0, 0)) -> bytes:
    """Encode a small solid-color PNG."""
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


class FakeGenerator:
    """
    Image generator returning canned results in order.

    Each result is either GeneratedImage or an exception to raise.
    """

    def __init__(self, *results):
        self.results = list(results)
        self.prompts = []

    def generate(self, prompt: str) -> GeneratedImage:
        self.prompts.append(prompt)
        result = self.results.pop(0) if self.results else GeneratedImage(data=make_png())
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def presentation(tmp_path):
    """A presentation file with frontmatter, an AI image and a fenced separator."""
    path = tmp_path / "slides.md"
    path.write_text(SAMPLE_PRESENTATION, encoding="utf-8")
    images = tmp_path / "images"
    images.mkdir()
    (images / "old.png").write_bytes(make_png(color=(0, 0, 255)))
    return path


@pytest.fixture
def rate_limited():
    return ImageGenerationError(ErrorType.RATE_LIMIT, "quota exceeded", 429)


@pytest.fixture
def fake_generator_cls():
    return FakeGenerator


@pytest.fixture
def png_factory():
    return make_png
