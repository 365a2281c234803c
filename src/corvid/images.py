from typing import ClassVar

from pydantic import BaseModel

from corvid.request import MultipartQuery


class ImagesQuery(BaseModel):
    prompt: str
    model: str | None = None
    n: int | None = None
    quality: str | None = None
    response_format: str | None = None
    size: str | None = None
    style: str | None = None
    user: str | None = None


class ImageEditsQuery(MultipartQuery):
    """Edit ``image`` as described by ``prompt``.

    ``image`` and ``mask`` are PNG bytes; transparent areas of the mask
    mark where the image is edited.
    """

    upload_fields: ClassVar[frozenset[str]] = frozenset({"image", "mask"})

    image: bytes
    prompt: str
    mask: bytes | None = None
    model: str | None = None
    n: int | None = None
    response_format: str | None = None
    size: str | None = None
    user: str | None = None

    def files(self) -> dict[str, tuple[str, bytes, str]]:
        files = {"image": ("image.png", self.image, "image/png")}
        if self.mask is not None:
            files["mask"] = ("mask.png", self.mask, "image/png")
        return files


class ImageVariationsQuery(MultipartQuery):
    upload_fields: ClassVar[frozenset[str]] = frozenset({"image"})

    image: bytes
    model: str | None = None
    n: int | None = None
    response_format: str | None = None
    size: str | None = None
    user: str | None = None

    def files(self) -> dict[str, tuple[str, bytes, str]]:
        return {"image": ("image.png", self.image, "image/png")}


class Image(BaseModel):
    url: str | None = None
    b64_json: str | None = None
    revised_prompt: str | None = None


class ImagesResult(BaseModel):
    created: int
    data: list[Image]
