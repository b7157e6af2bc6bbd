import sys, os, json

from helpers import log
from geosgeom.equality import Equality
from geosgeom.interface import FactoryOptions, preferred_factory

def get_inputs(data_path):

    input_set = []
    item_paths = []

    if os.path.isdir(data_path):
        log(f"{data_path} is a directory.")

        for item in sorted(os.listdir(data_path)):
            item_path = os.path.join(data_path, item)

            if os.path.isfile(item_path) and item.endswith(".json"):

                item_paths.append(item_path)

                with open(item_path, 'r') as f:
                    json_data = json.load(f)

                    ## single item
                    if not isinstance(json_data, list):
                        input_set += [json_data]
                    else:
                        input_set += json_data

            else:
                log(f"{item} skipped.")

    elif os.path.isfile(data_path):
        log(f"{data_path} is a file.")

        item_paths.append(data_path)

        with open(data_path, 'r') as f:
            json_data = json.load(f)

            ## single item
            if not isinstance(json_data, list):
                input_set += [json_data]
            else:
                input_set += json_data

    else:
        log(f"{data_path} does not exist.", level=1)

    return input_set, item_paths

def process_item(item, factories, engine=None):
    """
    Parse one input item and describe it.

    item: {"wkt": ...} or {"wkb_hex": ...}, optional "srid" and "has_z".
    factories: cache of factories keyed by (srid, has_z), filled on demand.
    """
    opts = FactoryOptions(srid=item.get("srid", 0), has_z_coordinate=item.get("has_z", False))
    key = (opts.srid, opts.has_z_coordinate)
    if key not in factories:
        factories[key] = preferred_factory(engine=engine, **opts.model_dump())
    factory = factories[key]

    if "wkt" in item:
        geom = factory.parse_wkt(item["wkt"])
    elif "wkb_hex" in item:
        try:
            geom = factory.parse_wkb(bytes.fromhex(item["wkb_hex"]))
        except ValueError:
            geom = None
    else:
        return {"input": item, "error": "item needs 'wkt' or 'wkb_hex'"}

    if geom is None:
        return {"input": item, "error": "could not parse geometry"}

    wkb = geom.as_binary()
    reparsed = factory.parse_wkb(wkb) if wkb is not None else None
    round_trip = geom.eql(reparsed) if reparsed is not None else Equality.INDETERMINATE

    result = geom._serialize()
    result["wkb_hex"] = wkb.hex() if wkb is not None else None
    result["round_trip"] = round_trip.value
    return result

def process_inputs(input_set, engine=None):
    factories = {}
    return [process_item(item, factories, engine=engine) for item in input_set]


if __name__ == '__main__':

    message = "START RUN.PY"
    log(f"\n\n{message}\n{''.join(['-']*len(message))}\n")

    if len(sys.argv) < 2:
        print("usage: python run.py <input.json|directory> [output.json]")
        sys.exit(2)

    data_path = sys.argv[1]

    input_set, item_paths = get_inputs(data_path)
    results = process_inputs(input_set)

    if len(sys.argv) > 2:
        output_path = sys.argv[2]
        with open(output_path, 'w') as f:
            json.dump(results, f, indent=2)

        print("Done with output:")

        # must be last print statement
        print(output_path)
    else:
        print(json.dumps(results, indent=2))
