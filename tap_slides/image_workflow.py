"""
AI image generation workflow.

A nested state machine shown as an overlay of the dev session:

    SLIDE_SELECT -> IMAGE_SELECT -> PROMPT -> GENERATING -> DONE

IMAGE_SELECT is skipped for slides without AI images. The workflow never
touches the terminal or the session directly: it reacts to messages, returns
commands for the runtime to execute, and reports CANCELLED or COMPLETED to its
owner through the returned signal.
"""
import logging
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from rich.console import Group
from rich.text import Text

from .artifact_store import ArtifactStore, describe_image
from .document_editor import DocumentEditor
from .errors import ArtifactStoreError, ConfigError, ErrorType, ImageGenerationError
from .gemini import ImageGenerator
from .markdown_parser import SlideSplitter, parse_slides, split_slides_preserving_code_blocks, truncate
from .messages import (
    SPINNER_TICK_INTERVAL,
    Command,
    Commands,
    ImageGenerateMsg,
    KeyMsg,
    Message,
    SpinnerTickMsg,
    spinner_tick_cmd,
)
from .models import AIImageInfo, GeneratedImage, ImageSelectOption, SlideInfo, WorkflowStep
from .styles import (
    INLINE_ERROR_STYLE,
    ITALIC_MUTED_STYLE,
    MUTED_STYLE,
    SELECTED_STYLE,
    URL_STYLE,
    render_help,
    render_list_item,
    render_title,
)
from .widgets import Spinner, TextArea

logger = logging.getLogger(__name__)

MAX_OPTION_PROMPT_LENGTH = 40
MAX_DISPLAY_PROMPT_LENGTH = 60

API_ERROR_MESSAGES = {
    ErrorType.AUTH: "Authentication failed. Please check your GEMINI_API_KEY.",
    ErrorType.RATE_LIMIT: "Rate limit exceeded. Please wait a moment and try again.",
    ErrorType.CONTENT_POLICY: "The prompt was blocked by content policy. Please try a different prompt.",
    ErrorType.INVALID_REQUEST: "Invalid request. Please try a different prompt.",
    ErrorType.NO_IMAGE: "No image was generated. Please try a different prompt.",
    ErrorType.NETWORK: "Network error. Please check your connection and try again.",
    ErrorType.SERVER: "Server error. Please try again later.",
}

GeneratorFactory = Callable[[], ImageGenerator]


class WorkflowSignal(Enum):
    """What the owner of the workflow should do after an update."""

    CONTINUE = "continue"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


def format_api_error(error: Optional[Exception]) -> str:
    """Convert a generation failure to a user-facing message."""
    if error is None:
        return ""
    if isinstance(error, ImageGenerationError) and error.error_type in API_ERROR_MESSAGES:
        return API_ERROR_MESSAGES[error.error_type]
    return f"Failed to generate image: {error}"


class ImageWorkflow:
    """
    State of one image-generation session, from slide choice to saved file.

    Created fresh each time the overlay opens; the slide list is read from
    the markdown file at that moment.
    """

    def __init__(
        self,
        markdown_file: Union[str, Path],
        generator_factory: GeneratorFactory,
        *,
        splitter: SlideSplitter = split_slides_preserving_code_blocks,
        store: Optional[ArtifactStore] = None,
        editor: Optional[DocumentEditor] = None,
        spinner_interval: float = SPINNER_TICK_INTERVAL,
    ):
        self.markdown_file = Path(markdown_file)
        self.generator_factory = generator_factory
        self.splitter = splitter
        self.store = store or ArtifactStore(self.markdown_file)
        self.editor = editor or DocumentEditor(self.markdown_file, splitter)
        self.spinner_interval = spinner_interval

        self.step = WorkflowStep.SLIDE_SELECT
        self.slides: List[SlideInfo] = []
        self.selected_index = 0
        self.image_options: List[ImageSelectOption] = []
        self.image_option_index = 0
        self.selected_image: Optional[AIImageInfo] = None  # set only when regenerating
        self.prompt = ""
        self.generated_image: Optional[GeneratedImage] = None
        self.error = ""
        self.is_generating = False
        self.generation = 0  # bumped on every submit or retry
        self.saved_image_path = ""
        self.persist_attempted = False

        self.prompt_input = TextArea(placeholder="Describe the image you want to generate...", char_limit=2000, width=60)
        self.spinner = Spinner()

        self.load_slides()

    def load_slides(self) -> None:
        """
        Parse the markdown file into the slide list.

        Raises:
            ConfigError: If the file cannot be read
        """
        try:
            content = self.editor.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"failed to read markdown file: {e}") from e
        self.slides = parse_slides(content, self.splitter)

    @property
    def selected_slide(self) -> Optional[SlideInfo]:
        if 0 <= self.selected_index < len(self.slides):
            return self.slides[self.selected_index]
        return None

    @property
    def is_regenerating(self) -> bool:
        return self.selected_image is not None

    @property
    def awaiting_persist(self) -> bool:
        """True once a generated image is ready but not yet written to disk."""
        return self.step == WorkflowStep.DONE and self.generated_image is not None and not self.persist_attempted

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, msg: Message) -> Tuple[WorkflowSignal, Commands]:
        """
        Handle one message.

        Returns:
            Tuple of (signal for the owner, commands to run)
        """
        if isinstance(msg, KeyMsg):
            return self._handle_key(msg.key)

        if isinstance(msg, ImageGenerateMsg):
            self._handle_generate_result(msg)
            return WorkflowSignal.CONTINUE, []

        if isinstance(msg, SpinnerTickMsg):
            if (
                self.step == WorkflowStep.GENERATING
                and self.is_generating
                and msg.generation == self.generation
            ):
                self.spinner.tick()
                return WorkflowSignal.CONTINUE, [self._spinner_cmd()]
            return WorkflowSignal.CONTINUE, []

        return WorkflowSignal.CONTINUE, []

    def _handle_key(self, key: str) -> Tuple[WorkflowSignal, Commands]:
        if self.step == WorkflowStep.SLIDE_SELECT:
            return self._handle_slide_select_key(key)
        if self.step == WorkflowStep.IMAGE_SELECT:
            return self._handle_image_select_key(key)
        if self.step == WorkflowStep.PROMPT:
            return self._handle_prompt_key(key)
        if self.step == WorkflowStep.GENERATING:
            return self._handle_generating_key(key)
        if self.step == WorkflowStep.DONE:
            return self._handle_done_key(key)
        raise AssertionError(f"unhandled workflow step: {self.step}")

    def _handle_slide_select_key(self, key: str) -> Tuple[WorkflowSignal, Commands]:
        if key in ("esc", "q"):
            return WorkflowSignal.CANCELLED, []

        if key in ("up", "k"):
            if self.selected_index > 0:
                self.selected_index -= 1
        elif key in ("down", "j"):
            if self.selected_index < len(self.slides) - 1:
                self.selected_index += 1
        elif key == "enter":
            slide = self.selected_slide
            if slide is not None and slide.has_ai_images:
                self._build_image_options()
                self.step = WorkflowStep.IMAGE_SELECT
            else:
                self._start_prompt(None)

        return WorkflowSignal.CONTINUE, []

    def _build_image_options(self) -> None:
        slide = self.selected_slide
        if slide is None:
            self.image_options = []
            return

        options = [ImageSelectOption(label="Add new image")]
        for image in slide.ai_images:
            label = f"Regenerate: {truncate(image.prompt, MAX_OPTION_PROMPT_LENGTH)}"
            options.append(ImageSelectOption(label=label, ai_image=image))

        self.image_options = options
        self.image_option_index = 0

    def _handle_image_select_key(self, key: str) -> Tuple[WorkflowSignal, Commands]:
        if key == "esc":
            self.step = WorkflowStep.SLIDE_SELECT
            self.image_options = []
            self.image_option_index = 0
        elif key in ("up", "k"):
            if self.image_option_index > 0:
                self.image_option_index -= 1
        elif key in ("down", "j"):
            if self.image_option_index < len(self.image_options) - 1:
                self.image_option_index += 1
        elif key == "enter":
            if 0 <= self.image_option_index < len(self.image_options):
                self._start_prompt(self.image_options[self.image_option_index].ai_image)

        return WorkflowSignal.CONTINUE, []

    def _start_prompt(self, image: Optional[AIImageInfo]) -> None:
        """Enter PROMPT, pre-filled from *image* when regenerating."""
        self.selected_image = image
        self.prompt = image.prompt if image is not None else ""
        self.prompt_input.set_value(self.prompt)
        self.prompt_input.focus()
        self.error = ""
        self.step = WorkflowStep.PROMPT

    def _handle_prompt_key(self, key: str) -> Tuple[WorkflowSignal, Commands]:
        if key == "esc":
            self.prompt_input.blur()
            self.error = ""
            slide = self.selected_slide
            if slide is not None and slide.has_ai_images:
                self.step = WorkflowStep.IMAGE_SELECT
            else:
                self.step = WorkflowStep.SLIDE_SELECT
            return WorkflowSignal.CONTINUE, []

        if key in ("enter", "ctrl+d"):
            return WorkflowSignal.CONTINUE, self._submit_prompt()

        self.prompt_input.handle_key(key)
        return WorkflowSignal.CONTINUE, []

    def _submit_prompt(self) -> Commands:
        prompt = self.prompt_input.value.strip()
        if not prompt:
            self.error = "Prompt cannot be empty"
            return []

        self.prompt = prompt
        self.error = ""
        self.prompt_input.blur()
        self.step = WorkflowStep.GENERATING
        self.is_generating = True
        logger.info(f"Generating image for slide {self.selected_index + 1}")
        return [self._start_spinner(), self._generate_cmd()]

    def _start_spinner(self) -> Command:
        """Begin a new tick chain; ticks still queued from earlier attempts go stale."""
        self.generation += 1
        return self._spinner_cmd()

    def _spinner_cmd(self) -> Command:
        return spinner_tick_cmd(self.spinner_interval, generation=self.generation)

    def _generate_cmd(self) -> Command:
        prompt = self.prompt
        factory = self.generator_factory

        def _generate() -> Message:
            try:
                image = factory().generate(prompt)
            except ImageGenerationError as e:
                logger.warning(f"Image generation failed: {e}")
                return ImageGenerateMsg(error=e)
            except Exception as e:
                logger.exception("Image generation failed unexpectedly")
                return ImageGenerateMsg(error=e)
            return ImageGenerateMsg(image=image)

        return _generate

    def _handle_generating_key(self, key: str) -> Tuple[WorkflowSignal, Commands]:
        # Keys only matter once a failure is on screen.
        if self.is_generating or not self.error:
            return WorkflowSignal.CONTINUE, []

        if key == "r":
            self.error = ""
            self.is_generating = True
            logger.info("Retrying image generation")
            return WorkflowSignal.CONTINUE, [self._start_spinner(), self._generate_cmd()]

        if key == "esc":
            self.error = ""
            self.is_generating = False
            self.prompt_input.focus()
            self.step = WorkflowStep.PROMPT

        return WorkflowSignal.CONTINUE, []

    def _handle_done_key(self, key: str) -> Tuple[WorkflowSignal, Commands]:
        if key in ("enter", "esc", " "):
            return WorkflowSignal.COMPLETED, []
        return WorkflowSignal.CONTINUE, []

    def _handle_generate_result(self, msg: ImageGenerateMsg) -> None:
        if self.step != WorkflowStep.GENERATING:
            logger.debug(f"Ignoring generation result in step {self.step}")
            return

        self.is_generating = False

        if msg.error is not None or msg.image is None:
            self.error = format_api_error(msg.error)
            return

        self.generated_image = msg.image
        self.step = WorkflowStep.DONE

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def persist(self) -> str:
        """
        Write the generated image and reference it from the markdown.

        The steps are not transactional: if the markdown rewrite fails the
        saved image stays on disk and the document is left unchanged.

        Returns:
            Path of the saved image relative to the markdown file

        Raises:
            ArtifactStoreError, DocumentError, OSError: On filesystem failures
        """
        if self.generated_image is None:
            raise AssertionError("persist() called without a generated image")

        self.persist_attempted = True
        image = self.generated_image
        path = self.store.save(image.data, image.content_type)

        if self.selected_image is not None:
            self.editor.replace_image(self.selected_image, self.prompt, path)
            old_path = self.selected_image.image_path
            # Identical output hashes to the same file; it is the new image now.
            if old_path != path:
                try:
                    self.store.delete(old_path)
                except ArtifactStoreError as e:
                    logger.warning(f"Could not delete old image {old_path}: {e}")
        else:
            self.editor.insert_image(self.selected_index, self.prompt, path)

        self.saved_image_path = path
        return path

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def view(self) -> Group:
        if self.step == WorkflowStep.SLIDE_SELECT:
            return self._view_slide_select()
        if self.step == WorkflowStep.IMAGE_SELECT:
            return self._view_image_select()
        if self.step == WorkflowStep.PROMPT:
            return self._view_prompt()
        if self.step == WorkflowStep.GENERATING:
            return self._view_generating()
        if self.step == WorkflowStep.DONE:
            return self._view_done()
        raise AssertionError(f"unhandled workflow step: {self.step}")

    def _slide_info(self) -> Optional[Text]:
        slide = self.selected_slide
        if slide is None:
            return None
        return Text(f"Slide {slide.index + 1}: {slide.title}", style=ITALIC_MUTED_STYLE)

    def _view_slide_select(self) -> Group:
        rows = [render_title("🖼  Select Slide for Image"), Text()]

        for i, slide in enumerate(self.slides):
            row = render_list_item(slide.title, i == self.selected_index, prefix=f"{slide.index + 1:2d}.")
            if slide.ai_image_count == 1:
                row.append(" [has 1 AI image]", style=ITALIC_MUTED_STYLE)
            elif slide.has_ai_images:
                row.append(f" [has {slide.ai_image_count} AI images]", style=ITALIC_MUTED_STYLE)
            rows.append(row)

        rows.append(Text())
        rows.append(render_help(("↑/↓", "navigate"), ("enter", "select"), ("esc", "cancel")))
        return Group(*rows)

    def _view_image_select(self) -> Group:
        rows = [render_title("🖼  Select Action"), Text()]

        info = self._slide_info()
        if info is not None:
            rows.extend([info, Text()])

        for i, option in enumerate(self.image_options):
            prefix = "+" if option.is_add_new else "↻"
            rows.append(render_list_item(option.label, i == self.image_option_index, prefix=prefix))

        rows.append(Text())
        rows.append(render_help(("↑/↓", "navigate"), ("enter", "select"), ("esc", "back")))
        return Group(*rows)

    def _view_prompt(self) -> Group:
        rows = [render_title("🖼  Enter Image Prompt"), Text()]

        info = self._slide_info()
        if info is not None:
            rows.append(info)
            if self.is_regenerating:
                rows.append(Text("(Regenerating existing image)", style=ITALIC_MUTED_STYLE))
            rows.append(Text())

        if self.error:
            rows.extend([Text("Error: " + self.error, style=INLINE_ERROR_STYLE), Text()])

        rows.extend([self.prompt_input.render(), Text()])
        rows.append(render_help(("enter", "submit"), ("ctrl+d", "submit"), ("esc", "back")))
        return Group(*rows)

    def _view_generating(self) -> Group:
        rows = [render_title("🖼  Generating Image"), Text()]

        info = self._slide_info()
        if info is not None:
            rows.extend([info, Text()])

        prompt_line = Text("Prompt: ")
        prompt_line.append(truncate(self.prompt, MAX_DISPLAY_PROMPT_LENGTH), style="italic")
        rows.extend([prompt_line, Text()])

        if self.error:
            rows.extend([Text("Error: " + self.error, style=INLINE_ERROR_STYLE), Text()])
            rows.append(render_help(("r", "retry"), ("esc", "back to prompt")))
        else:
            progress = self.spinner.render()
            progress.append(" ")
            progress.append("Generating image...", style=SELECTED_STYLE)
            rows.extend([progress, Text()])
            rows.append(Text("Please wait, this may take a moment...", style=MUTED_STYLE))

        return Group(*rows)

    def _view_done(self) -> Group:
        if self.error:
            rows = [Text("✗ Image Could Not Be Saved", style=INLINE_ERROR_STYLE), Text()]
        else:
            rows = [render_title("✓ Image Generated Successfully"), Text()]

        info = self._slide_info()
        if info is not None:
            rows.extend([info, Text()])

        if self.error:
            rows.extend([Text("Error: " + self.error, style=INLINE_ERROR_STYLE), Text()])
        elif self.saved_image_path:
            saved = Text("Saved to: ")
            saved.append(self.saved_image_path, style=URL_STYLE)
            details = describe_image(self.generated_image.data) if self.generated_image else None
            if details:
                width, height, fmt = details
                saved.append(f"  ({width}×{height} {fmt})", style=MUTED_STYLE)
            rows.extend([saved, Text()])

            if self.is_regenerating:
                rows.append(Text("(Regenerated existing image)", style=MUTED_STYLE))
            else:
                rows.append(Text("(Added new image to slide)", style=MUTED_STYLE))
            rows.append(Text())

        help_line = Text("Press ", style=MUTED_STYLE)
        help_line.append_text(render_help(("enter", ""), ("esc", "")))
        help_line.append(" to continue", style=MUTED_STYLE)
        rows.append(help_line)
        return Group(*rows)
