import argparse
import os
import random

from palette import hex_to_rgb, palette_from_image
from titles import title_from_image


def main(argv=None):
    parser = argparse.ArgumentParser(description="Print the gallery palette and a title for an image.")
    parser.add_argument("image", help="path to an image file")
    parser.add_argument("--seed", type=int, default=None, help="seed for title word choice")
    args = parser.parse_args(argv)

    if not os.path.exists(args.image):
        print('ERROR: image not found at', args.image)
        return 1

    with open(args.image, "rb") as fh:
        image_bytes = fh.read()

    palette = palette_from_image(image_bytes)
    print('Palette (HEX, RGB):')
    for color in palette:
        print(color, tuple(hex_to_rgb(color)))
    print('Title:', title_from_image(image_bytes, rng=random.Random(args.seed)))
    return 0

if __name__ == '__main__':
    raise SystemExit(main())
