#!/usr/bin/env python3
"""ZoneMap command line interface for zone checks and visible-set previews"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

import requests
from tabulate import tabulate

from zonemap.services.catastro_loader import load_catastro_csv
from zonemap.utils.exceptions import ZoneMapException

# Default API endpoint
DEFAULT_API_URL = "http://localhost:5000/api/v1"


def load_entities(path: str) -> List[Dict[str, Any]]:
    """Entities from a cadastral CSV export or a JSON list"""
    if path.lower().endswith(".csv"):
        return [e.to_dict() for e in load_catastro_csv(path)]
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return data["entities"] if isinstance(data, dict) else data


def load_polygon(path: str) -> List[Dict[str, float]]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return data.get("polygon", data.get("coordinates", [])) if isinstance(data, dict) else data


class ZoneMapCli:
    """Command line interface for ZoneMap"""

    def __init__(self, api_url: str = DEFAULT_API_URL):
        self.api_url = api_url.rstrip('/')
        self.session = requests.Session()

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        response = self.session.post(f"{self.api_url}{path}", json=body)
        if response.status_code >= 400:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            raise requests.HTTPError(f"HTTP {response.status_code}: {message}", response=response)
        return response.json()

    def visible(self, entities_file: str, bounds: List[float], zoom: int,
                polygon_file: str = None, search: str = "", sort: str = "address",
                floor: str = None, full_list: bool = False, limit: int = 25) -> None:
        """Preview what the map would render"""
        north, south, east, west = bounds
        body = {
            "entities": load_entities(entities_file),
            "viewport": {
                "bounds": {"north": north, "south": south, "east": east, "west": west},
                "zoom": zoom
            },
            "polygon": load_polygon(polygon_file) if polygon_file else [],
            "search": search,
            "sort": sort,
            "floor": floor,
            "show_full_list": full_list
        }
        print(f"🗺️  Filtering {len(body['entities'])} entities at zoom {zoom}\n")

        data = self._post("/viewport/visible", body)

        rows = [
            [e["id"], e.get("address", ""), e.get("floor", ""), e.get("size"), e.get("lat"), e.get("lng")]
            for e in data["entities"][:limit]
        ]
        if rows:
            print(tabulate(rows, headers=["Id", "Address", "Floor", "Size", "Lat", "Lng"], tablefmt="simple"))
        else:
            print("No entities in this area. Zoom in or draw a zone.")

        print(f"\n📊 Showing {data['count']} of {data['total']} "
              f"(cap {data['cap']}, {'zone' if data['polygon_active'] else 'viewport'} mode)")

    def zone_check(self, polygon_file: str) -> None:
        """Validate a drawn zone polygon"""
        data = self._post("/zones/validate", {"polygon": load_polygon(polygon_file)})

        if not data["valid"]:
            print(f"❌ Invalid zone: {data['error']}")
            return

        print("✅ Valid zone")
        print(f"  Vertices: {data['vertex_count']}")
        print(f"  Area: {data['area_m2']:,.0f} m²")
        print(f"  Perimeter: {data['perimeter_m']:,.0f} m")
        print(f"  Centroid: {data['centroid']['lat']:.6f}, {data['centroid']['lng']:.6f}")

    def geocode(self, entities_file: str, output: str = None) -> None:
        """Geocode entity addresses in one batch"""
        entities = load_entities(entities_file)
        items = [{"id": e["id"], "address": e.get("address", "")} for e in entities]
        print(f"📍 Geocoding {len(items)} addresses (rate limited, this takes a while)\n")

        data = self._post("/geocode/batch", {"items": items})
        summary = data["summary"]

        print(tabulate(
            [[summary["located"], summary["not_found"], summary["failed"]]],
            headers=["Located", "Not found", "Failed"],
        ))
        for item_id, error in summary["errors"].items():
            print(f"  ⚠️  {item_id}: {error}")

        if output:
            Path(output).write_text(json.dumps(data, indent=2), encoding="utf-8")
            print(f"\n📁 Results saved to: {output}")

    def health(self) -> None:
        base = self.api_url.split("/api/")[0]
        response = self.session.get(f"{base}/health")
        response.raise_for_status()
        data = response.json()
        print(f"✅ {data['status']} (version {data['version']})")
        print(tabulate(data["limits"].items(), headers=["Limit", "Value"]))


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="ZoneMap - zone geofencing CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  zonemap visible catastro.csv --bounds 39.42 39.38 -0.39 -0.41 --zoom 17
  zonemap visible properties.json --bounds 39.42 39.38 -0.39 -0.41 --zoom 13 --polygon zone.json --search "planta 2"
  zonemap zone-check zone.json
  zonemap geocode properties.json --output located.json
  zonemap health
        """
    )

    parser.add_argument(
        "--api-url",
        default=DEFAULT_API_URL,
        help="API endpoint URL"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    visible_parser = subparsers.add_parser("visible", help="Preview the visible set for a viewport")
    visible_parser.add_argument("entities", help="Cadastral CSV or JSON entity file")
    visible_parser.add_argument("--bounds", nargs=4, type=float, required=True,
                                metavar=("NORTH", "SOUTH", "EAST", "WEST"), help="Viewport bounds")
    visible_parser.add_argument("--zoom", type=int, required=True, help="Map zoom level")
    visible_parser.add_argument("--polygon", help="JSON file with the zone vertices")
    visible_parser.add_argument("--search", default="", help="Search term")
    visible_parser.add_argument("--sort", choices=["address", "floor", "size"], default="address")
    visible_parser.add_argument("--floor", help="Exact floor filter")
    visible_parser.add_argument("--full-list", action="store_true", help="Ignore viewport bounds")
    visible_parser.add_argument("--limit", type=int, default=25, help="Rows to print")

    zone_parser = subparsers.add_parser("zone-check", help="Validate a zone polygon file")
    zone_parser.add_argument("polygon", help="JSON file with the zone vertices")

    geocode_parser = subparsers.add_parser("geocode", help="Geocode entity addresses")
    geocode_parser.add_argument("entities", help="Cadastral CSV or JSON entity file")
    geocode_parser.add_argument("--output", help="Save the full result to this file")

    subparsers.add_parser("health", help="Check the API")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    cli = ZoneMapCli(args.api_url)

    try:
        if args.command == "visible":
            cli.visible(args.entities, args.bounds, args.zoom, args.polygon, args.search,
                        args.sort, args.floor, args.full_list, args.limit)
        elif args.command == "zone-check":
            cli.zone_check(args.polygon)
        elif args.command == "geocode":
            cli.geocode(args.entities, args.output)
        elif args.command == "health":
            cli.health()
    except (requests.RequestException, ZoneMapException, OSError, ValueError, KeyError) as e:
        print(f"❌ Error: {str(e)}")
        sys.exit(1)

if __name__ == "__main__":
    main()
