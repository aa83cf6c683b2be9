"""Vision extraction of pending slips (scan) and settled slips (grade)."""

import json
import logging
import math
import re
import uuid
from typing import Any, Optional

from slipledger.ai.parsing import json_from_model, json_object_from_model
from slipledger.ai.vision import VisionReader
from slipledger.models.schemas import ExtractedGrade, ScannedBet, ScanResult
from slipledger.utils.payout import finite_or_none

logger = logging.getLogger(__name__)

SCAN_SYSTEM = "You extract sportsbook slips and capper graphics into strict JSON. Do not omit visible legs."

SCAN_PROMPT = """
You are extracting sportsbook slip / capper graphic bet data into structured JSON for a betting ledger.

IMPORTANT GOAL:
- Extract EVERY visible betting line / leg.
- Do NOT collapse a parlay graphic into only 1 row if multiple legs are shown.
- If a parlay has 4 legs shown, return 4 bet rows (one per leg).
- When information is missing/unclear, leave blank and add an issue.

Image context (may be blank):
- book (user-entered): {book}
- slip_ref (user-entered): {slip_ref}
- filename: {filename}

OUTPUT STRICT JSON ONLY (no markdown fences):
{{
  "issues": ["string", "..."],
  "extracted": {{
    "meta": {{
      "book": "string or empty",
      "slip_ref": "string or empty",
      "bet_type": "parlay|straight|unknown",
      "parlay_legs_count_visible": number | null,
      "overall_odds": number | string | null,
      "wager": number | string | null,
      "to_pay": number | string | null,
      "payout": number | string | null,
      "capper_detected": "string or empty"
    }},
    "bets": [
      {{
        "date": "YYYY-MM-DD or empty",
        "capper": "string or empty",
        "league": "NBA/NCAAM/NFL/EPL/ATP/etc or best guess raw text",
        "market": "Spread|Moneyline|Total|Player Prop - Points|Player Prop - Assists|etc",
        "play": "human-readable full leg text",
        "selection": "team/player/over/under selection if separable",
        "line": number or string or null,
        "odds": number or string or null,
        "units": null,
        "opponent": "opponent or matchup if visible",
        "notes": "extra details (parlay context, wager/payout, timestamps, uncertainty)"
      }}
    ]
  }}
}}

EXTRACTION RULES:
1) Return one row per visible leg.
2) Preserve leg odds if shown next to each leg.
3) If only overall parlay odds are shown, put them in meta.overall_odds and mention them in each row's notes.
4) Player props like "5+ De'Aaron Fox Assists": market "Player Prop - Assists", selection "De'Aaron Fox Assists", line 5.
5) Spreads like "#7 Purdue +4.5": market "Spread", selection "Purdue", line 4.5, play "Purdue +4.5".
6) Moneylines like "Xavier TO WIN": market "Moneyline", selection "Xavier", line null, play "Xavier ML".
7) Infer league when logos/teams clearly indicate it.
8) Detect capper branding text and set capper if visible.
9) If anything is uncertain, still return the row and list an issue instead of skipping.

Return JSON only.
""".strip()

GRADE_PROMPT = """
You are grading a sportsbook slip screenshot (settled/won/lost/cashed out slip).
Extract ONLY what is visible in the image. Do not guess.
Goal: determine whether the ticket is settled and parse ticket-level settlement + visible legs.

Return STRICT JSON only with this schema:
{{
  "ticket": {{
    "ticket_status": "OPEN|FINAL",
    "ticket_result": "OPEN|WIN|LOSS|PUSH|VOID|CASHOUT",
    "book": string|null,
    "slip_ref": string|null,
    "paid_amount": number|null,
    "final_score_visible": boolean,
    "evidence": {{
      "won_tag": boolean,
      "lost_tag": boolean,
      "confetti": boolean,
      "paid_amount_shown": boolean,
      "final_score_shown": boolean
    }},
    "notes": string|null
  }},
  "bets": [
    {{
      "leg_index": number|null,
      "total_legs": number|null,
      "parlay": boolean,
      "market": string|null,
      "play": string|null,
      "selection": string|null,
      "line": number|string|null,
      "odds": number|string|null,
      "opponent": string|null,
      "result": "OPEN|WIN|LOSS|PUSH|VOID"|null,
      "final_score": string|null,
      "player_name": string|null,
      "team_name": string|null,
      "confidence": number|null
    }}
  ],
  "issues": string[]
}}

Rules:
- If the screenshot clearly shows WON/LOST/cashed out/paid/confetti/final results, ticket_status should be FINAL.
- If the screenshot is ambiguous or still live, ticket_status=OPEN.
- If only some legs are visible, include only visible legs and add an issue explaining partial visibility.
- Do not invent hidden legs from a collapsed parlay card.
- If provided outside the image: book={book}, slip_ref={slip_ref}; use as hints only.
""".strip()

_PARLAY_RE = re.compile(r"(\d+)\s*pick\s*parlay", re.IGNORECASE)
PARLAY_META_KEYS = ("overall_odds", "wager", "to_pay", "payout")


class ScanParseError(ValueError):
    """The winning vision model answered, but not with JSON."""

    def __init__(self, model: str, raw: str, failures: list[str]):
        super().__init__("Vision model returned non-JSON output")
        self.model = model
        self.raw_preview = raw[:2000]
        self.failures = failures


def _text(value: Any) -> str:
    if value is None or value == "":
        return ""
    return str(value).strip()


def normalize_scan(parsed: Any, raw_text: str, model: str, book: str = "", slip_ref: str = "") -> ScanResult:
    """Turn a model's scan JSON into reviewable rows plus warnings."""
    if isinstance(parsed, list):
        parsed = {"bets": parsed}
    if not isinstance(parsed, dict):
        parsed = {}

    extracted = parsed.get("extracted") if isinstance(parsed.get("extracted"), dict) else {}
    raw_bets = extracted.get("bets", parsed.get("bets", []))
    raw_bets = [b for b in raw_bets if isinstance(b, dict)] if isinstance(raw_bets, list) else []
    meta = extracted.get("meta", parsed.get("meta", {}))
    meta = dict(meta) if isinstance(meta, dict) else {}
    # NaN/infinity cannot be sent back as JSON
    meta = {k: v for k, v in meta.items() if not (isinstance(v, float) and not math.isfinite(v))}

    issues = [str(x) for x in parsed.get("issues", [])] if isinstance(parsed.get("issues"), list) else []

    if not raw_bets:
        issues.append("No bet rows were extracted from the image.")

    full_text = (json.dumps(parsed) + " " + raw_text).lower()
    mentions_parlay = "parlay" in full_text or bool(_PARLAY_RE.search(raw_text))
    if mentions_parlay and len(raw_bets) <= 1:
        issues.append(
            "Parlay detected but only 1 row extracted. Review image and add missing legs manually if needed."
        )

    parlay_parts = []
    if meta.get("bet_type"):
        parlay_parts.append(f"bet_type={meta['bet_type']}")
    for key in PARLAY_META_KEYS:
        if meta.get(key) not in (None, ""):
            parlay_parts.append(f"{key}={meta[key]}")

    injected = []
    if parlay_parts:
        injected.append(", ".join(parlay_parts))
    if book:
        injected.append(f"book={book}")
    if slip_ref:
        injected.append(f"slip_ref={slip_ref}")

    capper_detected = _text(meta.get("capper_detected"))
    group_id = slip_ref or uuid.uuid4().hex
    total = len(raw_bets)

    bets = []
    for index, raw in enumerate(raw_bets, start=1):
        notes = " | ".join(p for p in [_text(raw.get("notes")), *injected] if p)
        bets.append(ScannedBet(
            date=_text(raw.get("date")),
            capper=_text(raw.get("capper")) or capper_detected,
            league=_text(raw.get("league")),
            market=_text(raw.get("market")),
            play=_text(raw.get("play")),
            selection=_text(raw.get("selection")),
            line=_text(raw.get("line")),
            odds=_text(raw.get("odds")),
            units=_text(raw.get("units")),
            opponent=_text(raw.get("opponent")),
            notes=notes,
            ai_meta={
                "source": "slip_scan",
                "model": model,
                "group_id": group_id,
                "leg_index": index,
                "total_legs": total,
            },
        ))

    visible = finite_or_none(meta.get("parlay_legs_count_visible"))
    reported = int(visible) if visible is not None else 0
    if reported > 0 and len(bets) < reported:
        issues.append(
            f"Visible parlay legs may be {reported}, but only {len(bets)} rows were extracted. "
            "Review/edit before adding to ledger."
        )

    meta["model_used"] = model
    return ScanResult(issues=issues, bets=bets, meta=meta)


class SlipReader:
    """Reads slip images through the vision model list."""

    def __init__(self, vision: VisionReader):
        self.vision = vision

    async def scan(
        self,
        data_url: str,
        book: str = "",
        slip_ref: str = "",
        filename: str = "",
    ) -> ScanResult:
        """Extract candidate ledger rows from a pending slip.

        Raises:
            VisionError: when every model fails.
            ScanParseError: when the winning model's text is not JSON.
        """
        prompt = SCAN_PROMPT.format(
            book=book or "(none)",
            slip_ref=slip_ref or "(none)",
            filename=filename or "(unknown)",
        )
        result = await self.vision.read(prompt, data_url, system=SCAN_SYSTEM, temperature=0.1, max_tokens=2200)

        try:
            parsed = json_from_model(result.content)
        except ValueError:
            raise ScanParseError(result.model, result.content, result.failures)

        scan = normalize_scan(parsed, result.content, result.model, book=book, slip_ref=slip_ref)
        logger.info("Scan via %s: %d rows, %d issues", result.model, len(scan.bets), len(scan.issues))
        return scan

    async def read_settled(
        self,
        data_url: str,
        book: Optional[str] = None,
        slip_ref: Optional[str] = None,
    ) -> tuple[str, ExtractedGrade]:
        """Extract ticket settlement and visible legs from a settled slip.

        Returns the model used and the normalized extraction. A model whose
        output is not a JSON object counts as failed.
        """
        prompt = GRADE_PROMPT.format(book=book or "(none)", slip_ref=slip_ref or "(none)")
        result = await self.vision.read(
            prompt, data_url,
            temperature=0.0,
            max_tokens=1800,
            accept=json_object_from_model,
            extra_body={"response_format": {"type": "json_object"}},
        )
        return result.model, ExtractedGrade.from_model_output(json_object_from_model(result.content))
