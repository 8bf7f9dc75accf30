import argparse
import logging
import sys
import os
import yaml

MODES = ('fit', 'cross_validate')


def validate_config(config):
    required_keys = ['mode', 'train_data']
    missing = [k for k in required_keys if k not in config]
    if missing:
        raise ValueError(f"Missing required config keys: {missing}")
    if config['mode'] not in MODES:
        raise ValueError(f"Unknown mode: {config['mode']}. Must be one of {list(MODES)}")
    for section in ('pipeline', 'cross_validation'):
        if section in config and not isinstance(config[section] or {}, dict):
            raise ValueError(f"Config section '{section}' must be a mapping")


def main():
    parser = argparse.ArgumentParser(description='Question Pairs Pipeline Runner')
    parser.add_argument('--config', type=str, required=True, help='Path to YAML config file')
    parser.add_argument('--log-level', type=str, default='INFO', help='Logging level')
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO),
                        format='%(asctime)s - %(levelname)s - %(message)s')

    if not os.path.exists(args.config):
        print(f"Config file {args.config} does not exist.")
        sys.exit(1)

    with open(args.config, 'r') as f:
        config = yaml.safe_load(f)

    try:
        validate_config(config)
    except Exception as e:
        print(f"Config validation error: {e}")
        sys.exit(1)

    print(f"\n[INFO] Running mode: {config['mode']}\n")
    print(f"[INFO] Config summary:")
    for k, v in config.items():
        print(f"  {k}: {v}")
    print()

    import run_from_config
    run_from_config.run_from_config_main(config)

if __name__ == '__main__':
    main()
