from __future__ import annotations

from typing import Dict, Optional

CHAIN_IDS: Dict[str, str] = {
    "7eleven": "R0000",
    "applebees": "R0001",
    "arbys": "R0002",
    "auntieannes": "R0003",
    "bjsrestaurantbrewhouse": "R0004",
    "baskinrobbins": "R0005",
    "bobevans": "R0006",
    "bojangles": "R0007",
    "bonefishgrill": "R0008",
    "bostonmarket": "R0009",
    "burgerking": "R0010",
    "californiapizzakitchen": "R0011",
    "captainds": "R0012",
    "carlsjr": "R0013",
    "carrabbasitaliangrill": "R0014",
    "caseysgeneralstore": "R0015",
    "checkersdrivein/rallys": "R0016",
    "chickfila": "R0017",
    "chilis": "R0019",
    "chipotle": "R0020",
    "chuckecheese": "R0021",
    "churchschicken": "R0022",
    "cicispizza": "R0023",
    "culvers": "R0024",
    "dairyqueen": "R0025",
    "deltaco": "R0026",
    "dennys": "R0027",
    "dickeysbarbecuepit": "R0028",
    "dominos": "R0029",
    "dunkindonuts": "R0030",
    "dunkin": "R0030",
    "einsteinbros": "R0031",
    "elpolloloco": "R0032",
    "famousdaves": "R0033",
    "firehousesubs": "R0034",
    "fiveguys": "R0035",
    "friendlys": "R0036",
    "frischsbigboy": "R0037",
    "goldencorral": "R0038",
    "hardees": "R0039",
    "hooters": "R0040",
    "ihop": "R0041",
    "innoutburger": "R0042",
    "jackinthebox": "R0043",
    "jambajuice": "R0044",
    "jasonsdeli": "R0045",
    "jerseymikessubs": "R0046",
    "joescrabshack": "R0047",
    "kfc": "R0048",
    "krispykreme": "R0049",
    "krystal": "R0050",
    "littlecaesars": "R0051",
    "longjohnsilvers": "R0052",
    "longhornsteakhouse": "R0053",
    "marcospizza": "R0054",
    "mcalistersdeli": "R0055",
    "mcdonalds": "R0056",
    "moessouthwestgrill": "R0057",
    "noodlescompany": "R0058",
    "ocharleys": "R0059",
    "olivegarden": "R0060",
    "outbacksteakhouse": "R0061",
    "pfchangs": "R0062",
    "pandaexpress": "R0063",
    "panerabread": "R0064",
    "papajohns": "R0065",
    "papamurphys": "R0066",
    "perkins": "R0067",
    "pizzahut": "R0068",
    "popeyes": "R0069",
    "potbellysandwichshop": "R0070",
    "qdoba": "R0071",
    "quiznos": "R0072",
    "redlobster": "R0073",
    "redrobin": "R0074",
    "romanosmacaronigrill": "R0075",
    "roundtablepizza": "R0076",
    "rubytuesday": "R0077",
    "sbarro": "R0078",
    "sheetz": "R0079",
    "sonic": "R0080",
    "starbucks": "R0081",
    "steaknshake": "R0082",
    "subway": "R0083",
    "tgifridays": "R0084",
    "tacobell": "R0085",
    "thecapitalgrille": "R0086",
    "timhortons": "R0087",
    "wawa": "R0088",
    "wendys": "R0089",
    "whataburger": "R0090",
    "whitecastle": "R0091",
    "wingstop": "R0092",
    "yardhouse": "R0093",
    "zaxbys": "R0094",
}


def normalize_chain_name(name: str) -> str:
    cleaned = name.lower().strip()
    for ch in ("'", "’", ".", " ", "-", "&"):
        cleaned = cleaned.replace(ch, "")
    return cleaned


class ChainNutritionIndex:
    """Answers whether a restaurant name belongs to a chain with nutrition data."""

    def __init__(self, chain_ids: Optional[Dict[str, str]] = None) -> None:
        self._chain_ids = dict(CHAIN_IDS if chain_ids is None else chain_ids)

    def chain_id(self, name: str) -> Optional[str]:
        if not name:
            return None
        return self._chain_ids.get(normalize_chain_name(name))

    def has_extended_data(self, name: str) -> bool:
        return self.chain_id(name) is not None
