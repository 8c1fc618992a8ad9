import argparse
import base64

from .bootstrap import ensure_initialized, open_datastore, setup_logging
from .crypto_utils import format_address


def b64(x: bytes) -> str:
    return base64.b64encode(x).decode("ascii")


def main(argv=None):
    ap = argparse.ArgumentParser(description="Initialize a meshstore profile and its local identity")
    ap.add_argument("--profile", help='profile name (env MESH_PROFILE or "default")')
    ap.add_argument("--alias", help="display name for a newly minted identity (env MESH_ALIAS)")
    ap.add_argument("--settings", default=None, help="settings.toml path (default: <profile dir>/settings.toml)")
    ap.add_argument("--data-dir", default=None, help="root directory for profiles (default: user data dir)")
    ap.add_argument("--print-address", action="store_true", help="print only the shareable address")
    args = ap.parse_args(argv)

    cfg_path, cfg = ensure_initialized(
        profile=args.profile,
        settings_path=args.settings,
        alias=args.alias,
        data_dir=args.data_dir,
    )
    setup_logging((cfg.get("logging") or {}).get("level", "INFO"))

    ds = open_datastore(cfg)
    try:
        me = ds.get_primary_local_peer()
        addr = format_address(me.public_key)
        if args.print_address:
            print(addr)
            return 0
        print(f"profile: {cfg['node']['profile']}")
        print(f"  config : {cfg_path}")
        print(f"  db     : {cfg['storage']['path']}")
        print(f"  alias  : {me.alias}")
        print(f"  pubkey : {b64(me.public_key)}")
        print(f"  address: {addr}")
        print(f"  peers  : {ds.peers.count()}  messages: {ds.messages.count()}")
    finally:
        ds.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
