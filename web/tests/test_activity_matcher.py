from tourbook.models import Activity
from tourbook.services.activity_matcher import match_activity, normalize, overlap_score


def make(id, name, aliases=()):
    return Activity(id=id, slug=f"a-{id}", name=name, name_aliases=list(aliases))


def test_normalize_folds_turkish_letters():
    assert normalize("Kapadokya Balon Turu - Gün Doğumu!") == "kapadokya balon turu gun dogumu"
    assert normalize("İSTANBUL") == "istanbul"


def test_overlap_uses_smaller_token_set():
    assert overlap_score("Bosphorus Cruise", "Bosphorus Sunset Cruise Tour") == 1.0
    assert overlap_score("Boat", "Cruise") == 0.0


def test_exact_match_wins():
    activities = [make(1, "Balloon Flight Standard"), make(2, "Balloon Flight")]
    assert match_activity("balloon flight", activities).id == 2


def test_alias_match():
    activities = [make(1, "Kapadokya Balon Turu", aliases=["Cappadocia Balloon Tour"])]
    assert match_activity("Cappadocia Balloon Tour (Sunrise)", activities).id == 1


def test_tie_goes_to_lower_id():
    activities = [make(5, "Old City Walk"), make(3, "Old City Food")]
    assert match_activity("Old City", activities).id == 3


def test_below_threshold_is_none():
    assert match_activity("Gift Card", [make(1, "City Tour")]) is None
    assert match_activity("", [make(1, "City Tour")]) is None
