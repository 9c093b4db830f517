"""Per-workflow request payloads.

Each workflow kind has its own payload model. Fields grouped in
``exclusive_groups`` are alternatives for the same input (an uploaded photo or a
saved avatar, a garment image or a text description): at most one of them is
set at a time.
"""

from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from virtualroom.models.job import JobKind


class UnknownFieldError(ValueError):
    """Raised when a payload field or exclusive group does not exist for a workflow."""

    pass


def _filled(value: Optional[str]) -> bool:
    return bool(value and value.strip())


class WorkflowPayload(BaseModel):
    """Base for workflow payloads."""

    model_config = ConfigDict(frozen=True)

    exclusive_groups: ClassVar[dict[str, tuple[str, ...]]] = {}

    def missing_requirements(self) -> list[str]:
        """Describe every requirement the payload does not satisfy yet."""
        raise NotImplementedError

    def is_valid(self) -> bool:
        return not self.missing_requirements()

    def with_field(self, group: Optional[str], member: str, value: Any) -> "WorkflowPayload":
        """Return a copy with ``member`` set to ``value``.

        When ``group`` is given and ``value`` is not None, every other member of
        that exclusive group is cleared in the same step.

        Raises:
            UnknownFieldError: If the group or member does not exist, or the
                member belongs to a group other than ``group``
        """
        if member not in type(self).model_fields or member == "kind":
            raise UnknownFieldError(f"{self.kind.value} has no field '{member}'")

        if group is None:
            for name, members in self.exclusive_groups.items():
                if member in members:
                    raise UnknownFieldError(
                        f"'{member}' belongs to exclusive group '{name}'; set it through that group"
                    )
            return self.model_copy(update={member: value})

        members = self.exclusive_groups.get(group)
        if members is None:
            raise UnknownFieldError(f"{self.kind.value} has no exclusive group '{group}'")
        if member not in members:
            raise UnknownFieldError(f"'{member}' is not part of exclusive group '{group}'")

        update = {member: value}
        if value is not None:
            update.update({other: None for other in members if other != member})
        return self.model_copy(update=update)


class ClassicTryOnPayload(WorkflowPayload):
    """Put a garment on a person: the user's photo, a model photo or a saved avatar."""

    kind: Literal[JobKind.CLASSIC_TRY_ON] = JobKind.CLASSIC_TRY_ON
    self_image: Optional[str] = None
    model_image: Optional[str] = None
    selected_avatar: Optional[str] = None
    garment_image: Optional[str] = None
    garment_description: Optional[str] = None

    exclusive_groups: ClassVar[dict[str, tuple[str, ...]]] = {
        "person": ("self_image", "model_image", "selected_avatar"),
        "garment": ("garment_image", "garment_description"),
    }

    def missing_requirements(self) -> list[str]:
        missing = []
        if not (self.self_image or self.model_image or self.selected_avatar):
            missing.append("a photo of yourself or a saved avatar")
        if not (self.garment_image or _filled(self.garment_description)):
            missing.append("a garment image or description")
        return missing


class ProductToModelPayload(WorkflowPayload):
    """Show a product photo worn by a generated or chosen model."""

    kind: Literal[JobKind.PRODUCT_TO_MODEL] = JobKind.PRODUCT_TO_MODEL
    product_image: Optional[str] = None
    product_name: str = ""
    scene_prompt: str = "professional studio setting"
    model_image: Optional[str] = None
    selected_avatar: Optional[str] = None

    exclusive_groups: ClassVar[dict[str, tuple[str, ...]]] = {
        "model": ("model_image", "selected_avatar"),
    }

    def missing_requirements(self) -> list[str]:
        missing = []
        if not self.product_image:
            missing.append("a product image")
        if not _filled(self.product_name):
            missing.append("a product name")
        return missing


class TextToFashionPayload(WorkflowPayload):
    """Generate a complete look from a text description."""

    kind: Literal[JobKind.TEXT_TO_FASHION] = JobKind.TEXT_TO_FASHION
    fashion_description: str = ""
    scene_prompt: str = "modern urban setting"

    def missing_requirements(self) -> list[str]:
        if not _filled(self.fashion_description):
            return ["a fashion description"]
        return []


class AvatarCreationPayload(WorkflowPayload):
    """Build a reusable avatar from a face photo."""

    kind: Literal[JobKind.AVATAR_CREATION] = JobKind.AVATAR_CREATION
    face_image: Optional[str] = None
    avatar_name: str = ""

    def missing_requirements(self) -> list[str]:
        if not self.face_image:
            return ["a face photo"]
        return []


AnyPayload = Annotated[
    Union[ClassicTryOnPayload, ProductToModelPayload, TextToFashionPayload, AvatarCreationPayload],
    Field(discriminator="kind"),
]

PAYLOAD_TYPES: dict[JobKind, type[WorkflowPayload]] = {
    JobKind.CLASSIC_TRY_ON: ClassicTryOnPayload,
    JobKind.PRODUCT_TO_MODEL: ProductToModelPayload,
    JobKind.TEXT_TO_FASHION: TextToFashionPayload,
    JobKind.AVATAR_CREATION: AvatarCreationPayload,
}


def empty_payload(kind: JobKind) -> WorkflowPayload:
    """Return the initial (empty) payload for a workflow kind."""
    return PAYLOAD_TYPES[kind]()


class JobRequest(BaseModel):
    """A validated submission ready for the job repository."""

    model_config = ConfigDict(frozen=True)

    kind: JobKind
    payload: AnyPayload

    def to_wire(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "payload": self.payload.model_dump(mode="json", exclude={"kind"}),
        }
