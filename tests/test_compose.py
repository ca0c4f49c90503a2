import os
import sys
import unittest
from unittest.mock import patch

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from PIL import Image

from IconCompose import Compositor, IconResolver, resolve_icon
from IconPack import ICON_MASK_TAG, ICON_SCALE_TAG, ICON_UPON_TAG, MemoryResources, load_catalog

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)
GREEN = (0, 255, 0, 255)
CLEAR = (0, 0, 0, 0)


def solid(color, size=(100, 100)):
    return Image.new("RGBA", size, color)


def half_mask(size=(100, 100)):
    """Opaque on the left half, transparent on the right. Colour is arbitrary."""
    im = Image.new("RGBA", size, (0, 0, 0, 0))
    w, h = size
    im.paste((200, 100, 50, 255), (0, 0, w // 2, h))
    return im


def centre_square(color, size=(100, 100), inset=30):
    im = Image.new("RGBA", size, CLEAR)
    w, h = size
    im.paste(color, (inset, inset, w - inset, h - inset))
    return im


def catalog(resource_map=None, backgrounds=None):
    backs = backgrounds or {}
    return load_catalog(resource_map or {}, list(backs), resources=MemoryResources(backs))


class TestUnthemedCompose(unittest.TestCase):
    def test_no_layers_is_identity(self):
        src = Image.new("RGBA", (64, 48))
        src.putdata([(x % 256, (x * 7) % 256, 30, (x * 3) % 256) for x in range(64 * 48)])
        cat = catalog({ICON_SCALE_TAG: "0.5"})
        out = Compositor(cat).compose("com.any", src, "Any")
        self.assertEqual(out.size, src.size)
        self.assertEqual(out.mode, "RGBA")
        self.assertEqual(out.tobytes(), src.tobytes())

    def test_scale_ignored_without_layers(self):
        cat = catalog({ICON_SCALE_TAG: "0.5"})
        out = Compositor(cat).compose("com.any", solid(RED), "Any")
        self.assertEqual(out.getpixel((0, 0)), RED)
        self.assertEqual(out.getpixel((99, 99)), RED)

    def test_rgb_source_is_converted(self):
        out = Compositor(catalog()).compose("com.any", Image.new("RGB", (10, 10), (1, 2, 3)), "Any")
        self.assertEqual(out.mode, "RGBA")
        self.assertEqual(out.getpixel((5, 5)), (1, 2, 3, 255))


class TestScaledCompose(unittest.TestCase):
    def test_scale_with_background_margins(self):
        cat = catalog({ICON_SCALE_TAG: "0.8"}, backgrounds={"back": solid(BLUE)})
        self.assertAlmostEqual(cat.scale_factor, 0.8)
        out = Compositor(cat).compose("com.calc", solid(RED), "Calculator")
        self.assertEqual(out.size, (100, 100))
        # 80x80 source centred at (10, 10); background shows in the margins
        self.assertEqual(out.getpixel((50, 50)), RED)
        self.assertEqual(out.getpixel((15, 15)), RED)
        self.assertEqual(out.getpixel((84, 84)), RED)
        self.assertEqual(out.getpixel((5, 5)), BLUE)
        self.assertEqual(out.getpixel((95, 50)), BLUE)
        self.assertEqual(out.getpixel((50, 95)), BLUE)

    def test_scale_up_is_clipped(self):
        cat = load_catalog(
            {ICON_SCALE_TAG: "1.5", ICON_UPON_TAG: "upon"},
            [],
            resources=MemoryResources({"upon": centre_square(GREEN, inset=45)}),
        )
        out = Compositor(cat).compose("com.big", solid(RED), "Big")
        self.assertEqual(out.size, (100, 100))
        self.assertEqual(out.getpixel((0, 0)), RED)
        self.assertEqual(out.getpixel((50, 50)), GREEN)

    def test_tiny_scale_keeps_canvas_size(self):
        cat = load_catalog(
            {ICON_SCALE_TAG: "0.001", ICON_UPON_TAG: "upon"},
            [],
            resources=MemoryResources({"upon": solid(CLEAR)}),
        )
        out = Compositor(cat).compose("com.tiny", solid(RED), "Tiny")
        self.assertEqual(out.size, (100, 100))
        self.assertEqual(out.getpixel((0, 0))[3], 0)


class TestLayerRules(unittest.TestCase):
    def test_mask_erases(self):
        cat = load_catalog({ICON_MASK_TAG: "mask"}, [], resources=MemoryResources({"mask": half_mask((50, 50))}))
        out = Compositor(cat).compose("com.app", solid(RED), "App")
        self.assertEqual(out.getpixel((10, 50))[3], 0)
        self.assertEqual(out.getpixel((90, 50)), RED)

    def test_background_goes_behind(self):
        cat = catalog(backgrounds={"back": solid(BLUE)})
        src = centre_square(RED)
        out = Compositor(cat).compose("com.app", src, "App")
        self.assertEqual(out.getpixel((50, 50)), RED)
        self.assertEqual(out.getpixel((5, 5)), BLUE)

    def test_mask_then_background(self):
        cat = load_catalog(
            {ICON_MASK_TAG: "mask"},
            ["back"],
            resources=MemoryResources({"mask": half_mask(), "back": solid(BLUE)}),
        )
        out = Compositor(cat).compose("com.app", solid(RED), "App")
        self.assertEqual(out.getpixel((10, 50)), BLUE)
        self.assertEqual(out.getpixel((90, 50)), RED)

    def test_upon_on_top_of_everything(self):
        cat = load_catalog(
            {ICON_MASK_TAG: "mask", ICON_UPON_TAG: "upon"},
            ["back"],
            resources=MemoryResources({
                "mask": solid((0, 0, 0, 255)),
                "upon": centre_square(GREEN),
                "back": solid(BLUE),
            }),
        )
        out = Compositor(cat).compose("com.app", solid(RED), "App")
        self.assertEqual(out.getpixel((50, 50)), GREEN)
        self.assertEqual(out.getpixel((5, 5)), BLUE)

    def test_upon_blends_normally(self):
        cat = load_catalog(
            {ICON_UPON_TAG: "upon"},
            [],
            resources=MemoryResources({"upon": solid((0, 0, 255, 128))}),
        )
        r, g, b, a = Compositor(cat).compose("com.app", solid(RED), "App").getpixel((50, 50))
        self.assertEqual(a, 255)
        self.assertTrue(120 <= r <= 135, r)
        self.assertTrue(120 <= b <= 135, b)

    def test_background_choice_is_stable(self):
        backs = {f"b{i}": solid((i * 40, 0, 0, 255)) for i in range(4)}
        cat = catalog({ICON_SCALE_TAG: "0.5"}, backgrounds=backs)
        comp = Compositor(cat)
        first = comp.compose("com.calc", solid(GREEN), "Calculator")
        second = comp.compose("com.calc", solid(GREEN), "Calculator")
        self.assertEqual(first.tobytes(), second.tobytes())
        expected = cat.select_background("Calculator").getpixel((0, 0))
        self.assertEqual(first.getpixel((2, 2)), expected)


class TestResolver(unittest.TestCase):
    def setUp(self):
        self.override = solid(GREEN, (32, 32))
        self.cat = load_catalog(
            {"com.calc": "calc", "com.calc/com.calc.Main": "calc", ICON_SCALE_TAG: "0.8"},
            ["back"],
            resources=MemoryResources({"calc": self.override, "back": solid(BLUE)}),
        )
        self.resolver = IconResolver(self.cat)

    def test_direct_override_skips_compose(self):
        with patch.object(Compositor, "compose") as compose:
            out = self.resolver.resolve("com.calc", solid(RED), "Calculator")
        self.assertIs(out, self.override)
        compose.assert_not_called()

    def test_miss_with_fallback_composes(self):
        fallback = solid(RED, (72, 72))
        out = self.resolver.resolve("com.mail", fallback, "Mail")
        self.assertIsNotNone(out)
        self.assertEqual(out.size, (72, 72))

    def test_miss_without_fallback(self):
        self.assertIsNone(self.resolver.resolve("com.mail", None, "Mail"))

    def test_component_and_package_keys(self):
        self.assertIs(self.resolver.resolve_component("com.calc", ".Main", None, "Calculator"), self.override)
        self.assertIs(self.resolver.resolve_package("com.calc", None, "Calculator"), self.override)
        self.assertIsNone(self.resolver.resolve_component("com.calc", ".Other", None, "Calculator"))

    def test_resolve_icon_function(self):
        self.assertIs(resolve_icon(self.cat, "com.calc", None, "Calculator"), self.override)
        out = resolve_icon(self.cat, "com.clock", solid(RED, (40, 40)), "Clock")
        self.assertEqual(out.size, (40, 40))


if __name__ == '__main__':
    unittest.main()
