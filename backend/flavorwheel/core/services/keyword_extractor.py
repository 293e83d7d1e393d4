from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from flavorwheel.core.models.descriptor import Descriptor, DescriptorSource, DescriptorType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from flavorwheel.core.models.taxonomy import Taxonomy

KEYWORD_CONFIDENCE = 0.6
DEFAULT_INTENSITY = 3

_TOKEN_RE = re.compile(r"[a-z]+(?:['-][a-z]+)*")
_CLAUSE_RE = re.compile(r"[.;!?\n]+")

AROMA_CUES = ("nose", "smell", "aroma", "scent", "fragran", "bouquet", "sniff")

INTENSITY_MODIFIERS: dict[str, int] = {
    "hint": 1,
    "touch": 1,
    "trace": 1,
    "whisper": 1,
    "subtle": 1,
    "faint": 1,
    "slight": 1,
    "slightly": 1,
    "light": 2,
    "mild": 2,
    "soft": 2,
    "gentle": 2,
    "moderate": 3,
    "strong": 4,
    "bold": 4,
    "intense": 4,
    "pronounced": 4,
    "rich": 4,
    "heavy": 4,
    "very": 5,
    "overwhelming": 5,
    "huge": 5,
    "massive": 5,
}

# Category keyword table used when no taxonomy supplies its own.
BUILTIN_KEYWORDS: dict[str, dict[str, list[str]]] = {
    "Fruit": {
        "Berry": ["berry", "strawberry", "raspberry", "blackberry", "blueberry", "cherry", "currant"],
        "Citrus": ["citrus", "lemon", "lime", "orange", "grapefruit", "bergamot"],
        "Tree Fruit": ["apple", "pear", "peach", "apricot", "plum"],
        "Tropical": ["pineapple", "mango", "banana", "passion fruit", "papaya"],
        "Other": ["fruit"],
    },
    "Floral": {"Other": ["floral", "flower", "blossom", "rose", "lavender", "jasmine", "violet"]},
    "Herbal": {"Other": ["herbal", "herb", "mint", "basil", "oregano", "thyme", "sage"]},
    "Spice": {"Other": ["spice", "pepper", "cinnamon", "clove", "nutmeg", "cardamom", "anise"]},
    "Sweetness / Sugary / Confection": {
        "Other": ["sweet", "sugar", "honey", "candy", "caramel", "toffee", "vanilla", "chocolate", "molasses"],
    },
    "Earthy / Mineral": {"Other": ["earth", "mineral", "soil", "stone", "slate", "chalk", "wet stone"]},
    "Vegetal / Green": {"Other": ["vegetal", "green", "grass", "vegetable", "leaf", "hay"]},
    "Nutty / Grain / Cereal": {
        "Other": ["nut", "almond", "hazelnut", "walnut", "grain", "cereal", "oat", "malt", "bread"],
    },
    "Ferment / Funky": {"Other": ["ferment", "funk", "yeast", "barnyard", "sour"]},
    "Roasted / Toasted / Smoke": {"Other": ["roast", "toast", "smoke", "burnt", "char", "coffee", "tobacco"]},
    "Chemical": {"Other": ["chemical", "medicinal", "petroleum", "plastic", "iodine"]},
    "Animal / Must": {"Other": ["animal", "leather", "musk"]},
    "Dairy / Fatty": {"Other": ["dairy", "fat", "cream", "butter", "cheese", "milk"]},
    "Wood / Resin": {"Other": ["wood", "oak", "pine", "resin", "cedar", "sandalwood"]},
}

BUILTIN_TEXTURE_KEYWORDS: dict[str, list[str]] = {
    "Mouthfeel": ["creamy", "smooth", "silky", "velvety", "astringent", "oily", "chewy", "watery"],
    "Carbonation": ["fizzy", "effervescent", "sparkling", "bubbly", "carbonated"],
}


def singularize(word: str) -> str:
    if len(word) > 4 and word.endswith("ies"):
        return word[:-3] + "y"
    if len(word) > 4 and word.endswith(("ches", "shes", "sses", "xes")):
        return word[:-2]
    if len(word) > 3 and word.endswith("s") and not word.endswith(("ss", "us", "is")):
        return word[:-1]
    return word


def word_variants(word: str) -> list[str]:
    """Forms a tasting word may take relative to its lexicon keyword.

    Covers plurals and adjectival ``-y``/``-ey`` endings: "berries" -> berry,
    "oaky" -> oak, "smoky" -> smoke, "nutty" -> nut, "chocolatey" -> chocolate.
    """
    base = singularize(word)
    variants = [word, base]
    if len(base) > 3 and base.endswith("y"):
        stem = base[:-1]
        variants += [stem, stem + "e"]
        if len(stem) > 2 and stem[-1] == stem[-2]:
            variants.append(stem[:-1])
    return list(dict.fromkeys(variants))


@dataclass(frozen=True)
class LexiconEntry:
    keyword: tuple[str, ...]
    category: str
    subcategory: str | None
    fixed_type: DescriptorType | None = None


class KeywordLexicon:
    """Keyword -> (category, subcategory) index.

    Keywords are stored as tuples of singular words so multi-word keywords
    ("passion fruit") match as phrases. Later layers override earlier ones.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, ...], LexiconEntry] = {}
        self._max_words = 1

    def add(
        self,
        keyword: str,
        category: str,
        subcategory: str | None = None,
        fixed_type: DescriptorType | None = None,
    ) -> None:
        words = tuple(singularize(w) for w in _TOKEN_RE.findall(keyword.lower()))
        if not words:
            return
        self._entries[words] = LexiconEntry(words, category, subcategory, fixed_type)
        self._max_words = max(self._max_words, len(words))

    def add_tree(self, tree: dict[str, dict[str, list[str]]]) -> None:
        for category, subcategories in tree.items():
            for subcategory, keywords in subcategories.items():
                sub = None if subcategory == "Other" else subcategory
                if sub is not None:
                    self.add(sub, category, sub)
                for keyword in keywords:
                    self.add(keyword, category, sub)

    @property
    def max_words(self) -> int:
        return self._max_words

    def lookup(self, words: tuple[str, ...]) -> LexiconEntry | None:
        if len(words) == 1:
            for variant in word_variants(words[0]):
                entry = self._entries.get((variant,))
                if entry is not None:
                    return entry
            return None
        return self._entries.get(tuple(singularize(w) for w in words))

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def builtin(cls) -> KeywordLexicon:
        lexicon = cls()
        lexicon.add_tree(BUILTIN_KEYWORDS)
        for subcategory, keywords in BUILTIN_TEXTURE_KEYWORDS.items():
            for keyword in keywords:
                lexicon.add(keyword, "Texture", subcategory, DescriptorType.TEXTURE)
        return lexicon

    @classmethod
    def for_taxonomy(cls, taxonomy: Taxonomy | None) -> KeywordLexicon:
        """Built-in table with the taxonomy's category tree layered on top."""
        lexicon = cls.builtin()
        if taxonomy is not None:
            lexicon.add_tree(taxonomy.data.categories)
        return lexicon


class KeywordFallbackExtractor:
    """Deterministic, rule-based extractor used when the classifier is absent or fails."""

    def __init__(self, lexicon: KeywordLexicon | None = None) -> None:
        self._lexicon = lexicon or KeywordLexicon.builtin()

    def extract(
        self,
        text: str,
        taxonomy: Taxonomy | None = None,
        *,
        forced_type: DescriptorType | None = None,
    ) -> list[Descriptor]:
        """Return descriptors in first-occurrence order, one per ``(text, type)``."""
        if not text or not text.strip():
            return []
        lexicon = self._lexicon
        if taxonomy is not None and taxonomy.data.categories:
            lexicon = KeywordLexicon.for_taxonomy(taxonomy)

        found: list[Descriptor] = []
        seen: set[tuple[str, DescriptorType]] = set()
        for clause in _CLAUSE_RE.split(text.lower()):
            tokens = _TOKEN_RE.findall(clause)
            if not tokens:
                continue
            clause_type = forced_type or self._clause_type(tokens)
            for descriptor in self._scan(tokens, lexicon, clause_type):
                key = (descriptor.text, descriptor.type)
                if key not in seen:
                    seen.add(key)
                    found.append(descriptor)
        return found

    def extract_many(
        self,
        fields: Iterable[tuple[DescriptorType | None, str]],
        taxonomy: Taxonomy | None = None,
    ) -> list[Descriptor]:
        found: list[Descriptor] = []
        seen: set[tuple[str, DescriptorType]] = set()
        for forced_type, text in fields:
            for descriptor in self.extract(text, taxonomy, forced_type=forced_type):
                key = (descriptor.text, descriptor.type)
                if key not in seen:
                    seen.add(key)
                    found.append(descriptor)
        return found

    def _scan(self, tokens: list[str], lexicon: KeywordLexicon, clause_type: DescriptorType):
        i = 0
        while i < len(tokens):
            matched = None
            # Longest phrase first so "passion fruit" wins over "fruit"
            for width in range(min(lexicon.max_words, len(tokens) - i), 0, -1):
                entry = lexicon.lookup(tuple(tokens[i:i + width]))
                if entry is not None:
                    matched = (entry, width)
                    break
            if matched is None:
                i += 1
                continue
            entry, width = matched
            yield Descriptor(
                text=" ".join(tokens[i:i + width]),
                type=entry.fixed_type or clause_type,
                category=entry.category,
                subcategory=entry.subcategory,
                confidence=KEYWORD_CONFIDENCE,
                source=DescriptorSource.KEYWORD,
                intensity=self._intensity(tokens[max(0, i - 3):i]),
            )
            i += width

    @staticmethod
    def _clause_type(tokens: list[str]) -> DescriptorType:
        # Cues are word prefixes ("smells", "fragrant"), never inner substrings
        if any(token.startswith(AROMA_CUES) for token in tokens):
            return DescriptorType.AROMA
        return DescriptorType.FLAVOR

    @staticmethod
    def _intensity(preceding: list[str]) -> int:
        for token in reversed(preceding):
            level = INTENSITY_MODIFIERS.get(token)
            if level is not None:
                return level
        return DEFAULT_INTENSITY
