"""Basic usage example for the opinion conflict engine.

Seeds a few knowledge cards, detects conflicts between them, builds the
owner's belief profiles and checks a new card against those beliefs.

To use with DeepSeek:
1. Get an API key: https://platform.deepseek.com/
2. Set DEEPSEEK_API_KEY environment variable
3. Run this script

Without an API key the offline heuristic analyzer is used.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to path for imports without pip install
sys.path.insert(0, str(Path(__file__).parent.parent))

from opinion_conflict import Card, ConflictEngine, Settings

OWNER = "demo-user"

CARDS = [
    ("Remote work", "Remote work improves productivity", "remote work, productivity"),
    ("Remote work", "Remote work does not improve productivity", "remote work, productivity"),
    ("Coffee", "Coffee is good for focus", "coffee, focus"),
    ("机器学习", "机器学习是人工智能的一个分支", "机器学习, 人工智能"),
    ("深度学习", "深度学习属于机器学习领域", "机器学习, 深度学习"),
]


def main():
    """Run the basic usage example."""
    provider = "deepseek" if os.getenv("DEEPSEEK_API_KEY") else "heuristic"
    settings = Settings(store_backend="memory", provider=provider, log_level="WARNING")
    engine = ConflictEngine(settings)
    print(f"Using {engine.analyzer!r}\n")

    print("=" * 60)
    print("SAVING CARDS")
    print("=" * 60)

    start = datetime.now(timezone.utc) - timedelta(hours=1)
    for i, (title, viewpoint, keywords) in enumerate(CARDS):
        card = Card(
            owner_id=OWNER,
            title=title,
            viewpoint_summary=viewpoint,
            keywords=keywords,
            created_at=start + timedelta(minutes=i),
        )
        summary = engine.add_card(card)
        print(f"  {title}: {viewpoint}")
        for conflict in summary["card_conflicts"]:
            print(f"    -> conflicts with {conflict.other_card_id(card.id)[:8]} "
                  f"[{conflict.conflict_type.value}] score {conflict.conflict_score:.2f}")

    print()
    print("=" * 60)
    print("BELIEF PROFILES")
    print("=" * 60)

    for profile in engine.profiles.get_active_profiles(OWNER):
        print(f"  [{profile.belief_type.value}] {profile.topic}: {profile.belief_statement}")
        print(f"    Confidence: {profile.confidence:.2f}, cards: {len(profile.contributing_card_ids)}\n")

    print("=" * 60)
    print("NEW CARD AGAINST BELIEFS")
    print("=" * 60)

    card = Card(
        owner_id=OWNER,
        title="Coffee",
        viewpoint_summary="Coffee is bad for focus",
        keywords="coffee, focus",
    )
    summary = engine.add_card(card)
    print(f"  {card.viewpoint_summary}")
    for conflict in summary["cognitive_conflicts"]:
        print(f"    -> challenges belief '{conflict.user_belief}' "
              f"[{conflict.conflict_type.value}] score {conflict.conflict_score:.2f}")
    print()

    print("=" * 60)
    print("UNRESOLVED CONFLICTS")
    print("=" * 60)

    for conflict in engine.detection.get_unresolved_conflicts(OWNER):
        print(f"  {conflict!r}")
        engine.detection.acknowledge_conflict(conflict.id, OWNER)

    stats = engine.get_stats(OWNER)
    print()
    print(f"Total cards: {stats['total_cards']}")
    print(f"Active profiles: {stats['active_profiles']}")
    print(f"Card conflicts: {stats['card_conflicts']} "
          f"({stats['unresolved_card_conflicts']} unresolved)")
    print(f"Cognitive conflicts: {stats['cognitive_conflicts']} "
          f"({stats['unresolved_cognitive_conflicts']} unresolved)")

    engine.close()


if __name__ == "__main__":
    main()
