"""
Slice a tall rendered bitmap into fixed-size printable pages

Every page shows the full image at the same printed size, shifted upwards by
one page height per page, so page k shows the band
[(k-1) * page_height, k * page_height) of the image in millimetres. The crop
boxes carried by each slice express the same bands in source pixels.
"""
import math
from dataclasses import dataclass
from typing import List, Tuple

from PIL import Image


A4_WIDTH_MM = 210.0
A4_HEIGHT_MM = 297.0


@dataclass(frozen=True)
class PageSlice:
    index: int
    pixel_width: int
    pixel_height: int            # full page height in source pixels, never less than a crop
    vertical_offset_mm: float    # where the full image is placed on this page
    image_height_mm: float       # printed height of the full image
    band_mm: Tuple[float, float]
    crop_box: Tuple[int, int, int, int]

    @property
    def content_height(self):
        """Rows of the source bitmap that land on this page"""
        return self.crop_box[3] - self.crop_box[1]


def scaled_height_mm(img_width, img_height, page_width_mm=A4_WIDTH_MM):
    """Printed height of the whole image when it spans the page width"""
    return img_height * page_width_mm / img_width


def page_count(img_width, img_height, page_width_mm=A4_WIDTH_MM, page_height_mm=A4_HEIGHT_MM):
    scaled = scaled_height_mm(img_width, img_height, page_width_mm)
    return max(1, math.ceil(scaled / page_height_mm))


def paginate(img_width, img_height, page_width_mm=A4_WIDTH_MM, page_height_mm=A4_HEIGHT_MM):
    """
    Compute the page slices of a bitmap.

    Args:
        img_width: bitmap width in pixels
        img_height: bitmap height in pixels
        page_width_mm: printable page width
        page_height_mm: printable page height

    Returns:
        list of PageSlice, one per page, in order
    """
    if img_width <= 0 or img_height <= 0:
        raise ValueError(f'Cannot paginate an empty bitmap ({img_width}x{img_height})')
    if page_width_mm <= 0 or page_height_mm <= 0:
        raise ValueError('Page dimensions must be positive')

    scaled = scaled_height_mm(img_width, img_height, page_width_mm)
    pixels_per_mm = img_width / page_width_mm
    page_pixels = page_height_mm * pixels_per_mm
    pages = page_count(img_width, img_height, page_width_mm, page_height_mm)
    # Float boundaries give crops of floor or ceil(page_pixels) rows
    page_canvas = int(math.ceil(page_pixels))

    slices = []
    for index in range(pages):
        remaining = scaled - index * page_height_mm
        position = 0.0 if index == 0 else remaining - scaled
        top = min(img_height, int(round(index * page_pixels)))
        bottom = min(img_height, int(round((index + 1) * page_pixels)))
        slices.append(PageSlice(
            index=index,
            pixel_width=img_width,
            pixel_height=page_canvas,
            vertical_offset_mm=position,
            image_height_mm=scaled,
            band_mm=(index * page_height_mm, (index + 1) * page_height_mm),
            crop_box=(0, top, img_width, bottom),
        ))
    return slices


def crop_pages(image, slices, background='white') -> List[Image.Image]:
    """
    Cut the bitmap into one image per slice.

    Crops are disjoint. Each one is placed at the top of a
    pixel_width x pixel_height canvas, so every page has the same size and
    short pages are padded with the background colour.
    """
    pages = []
    for page in slices:
        region = image.crop(page.crop_box).convert('RGB')
        canvas = Image.new('RGB', (page.pixel_width, page.pixel_height), background)
        canvas.paste(region, (0, 0))
        pages.append(canvas)
    return pages
