import pytest

from normalize.names import (
    IdentityMatcher,
    IdentityNormalizer,
    display_name,
    identify,
    keys_match,
    last_sorted_token,
    normalize,
    surname_from_raw,
)


@pytest.mark.parametrize(
    "raw",
    [
        "Scottie Scheffler",
        "Scheffler, Scottie",
        "\U0001F1FA\U0001F1F8 Scottie Scheffler (USA)",
        "Ludvig Åberg",
        "  Sung-jae   Im ",
        "Davis Love III",
        "",
    ],
)
def test_normalize_is_idempotent(raw):
    assert normalize(normalize(raw)) == normalize(raw)


def test_surname_first_and_given_first_produce_same_key():
    assert normalize("Doe, John") == normalize("John Doe") == "doe john"


def test_normalize_strips_flags_parentheses_and_punctuation():
    assert normalize("\U0001F1FA\U0001F1F8 Scottie Scheffler (USA)") == "scheffler scottie"
    assert normalize("J.T. Poston") == "jt poston"


def test_normalize_folds_accents():
    assert normalize("Ludvig Åberg") == "aberg ludvig"
    assert normalize("José María Olazábal") == normalize("Jose Maria Olazabal")


def test_surname_from_raw_honours_comma_order_and_suffixes():
    assert surname_from_raw(identify("Smith, John")) == "smith"
    assert surname_from_raw(identify("J. Smith")) == "smith"
    assert surname_from_raw(identify("Davis Love III")) == "love"
    assert surname_from_raw(identify("Rory McIlroy (NIR)")) == "mcilroy"


def test_last_sorted_token_is_not_always_the_surname():
    assert last_sorted_token(identify("Rory McIlroy")) == "rory"
    assert last_sorted_token(identify("Smith, John")) == "smith"


def test_keys_match_two_tiers():
    assert keys_match("doe john", "doe john")
    assert keys_match("john smith", "j smith")
    assert not keys_match("doe john", "doe jane")
    assert not keys_match("", "")


def test_surname_strategy_is_swappable():
    a = identify("Rory McIlroy")
    b = identify("R. McIlroy")

    assert IdentityNormalizer().match(a, b)
    assert not IdentityNormalizer(surname_strategy=last_sorted_token).match(a, b)


def test_overrides_map_aliases_to_one_key():
    normalizer = IdentityNormalizer(overrides={"Tom Kim": "Joohyung Kim"})

    assert normalizer.normalize("Kim, Tom") == normalize("Joohyung Kim")
    normalizer.update({"Ben An": "Byeong Hun An"})
    assert normalizer.normalize("An, Ben") == "an byeong hun"


def test_find_prefers_exact_match_over_surname():
    matcher = IdentityMatcher()
    candidates = ["Jordan Smith", "Cameron Smith"]

    assert matcher.find("Smith, Cameron", candidates) == "Cameron Smith"
    # surname fallback takes the first candidate in order
    assert matcher.find("C. Smith", candidates) == "Jordan Smith"
    assert matcher.find("Tiger Woods", candidates) is None


def test_find_uses_name_accessor():
    matcher = IdentityMatcher()
    rows = [{"name": "Xander Schauffele"}, {"name": "Patrick Cantlay"}]

    found = matcher.find("Cantlay, Patrick", rows, name_of=lambda row: row["name"])

    assert found == {"name": "Patrick Cantlay"}


def test_group_collapses_spellings_of_one_player():
    groups = IdentityMatcher().group(["John Smith", "J. Smith", "Smith, John", "Rory McIlroy"])

    assert groups == [["John Smith", "J. Smith", "Smith, John"], ["Rory McIlroy"]]


def test_display_name_renders_given_name_first():
    assert display_name("Scheffler, Scottie") == "Scottie Scheffler"
    assert display_name("\U0001F1F0\U0001F1F7 Tom Kim (KOR)") == "Tom Kim"
    assert display_name("Collin Morikawa") == "Collin Morikawa"


def test_group_keeps_same_source_namesakes_apart():
    names = ["Cameron Smith", "Jordan Smith", "Smith, Cameron"]
    sources = {"Cameron Smith": {"datagolf"}, "Jordan Smith": {"datagolf"}, "Smith, Cameron": {"books"}}

    groups = IdentityMatcher().group(names, sources)

    assert groups == [["Cameron Smith", "Smith, Cameron"], ["Jordan Smith"]]


def test_group_skips_surname_shared_by_several_players():
    groups = IdentityMatcher().group(["Cameron Smith", "Jordan Smith", "C. Smith"])

    assert groups == [["Cameron Smith"], ["Jordan Smith"], ["C. Smith"]]
