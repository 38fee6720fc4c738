# tumble_engine/main.py
import sys
import json
import logging
import argparse
import time

from tumble_engine.domain.game.entities.spin_result import AutoSpinSettings
from tumble_engine.domain.game.factories.engine_factory import (
    EngineFactory, PAYTABLE_PATH, SIMULATION_PATH, VOLATILITY_PATH,
)
from tumble_engine.application.simulation.rtp_study import RTPStudy
from tumble_engine.infrastructure.concurrency.task_executor import ExecutionMode, TaskExecutor
from tumble_engine.infrastructure.config.loaders.yaml_loader import ConfigError, YamlConfigLoader
from tumble_engine.infrastructure.config.validators.schema_validator import SchemaValidator
from tumble_engine.infrastructure.logging.log_manager import initialize_logging


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Cluster-pays tumble slot engine")

    parser.add_argument(
        "-c", "--config",
        default=SIMULATION_PATH,
        help="Path to simulation configuration file"
    )
    parser.add_argument("--paytable", default=PAYTABLE_PATH, help="Path to paytable file")
    parser.add_argument("--volatility", default=VOLATILITY_PATH, help="Path to volatility presets file")

    parser.add_argument(
        "--mode",
        choices=["rtp", "study", "play"],
        default="rtp",
        help="'rtp'=single RTP simulation, 'study'=multi-seed RTP study, 'play'=spin an engine"
    )
    parser.add_argument("--spins", type=int, default=None, help="Number of spins (per seed in study mode)")
    parser.add_argument("--seed", default=None, help="Seed overriding the configuration")
    parser.add_argument("--preset", default=None, help="Volatility preset name")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output"
    )
    parser.add_argument(
        "--log-mode",
        choices=["all", "app", "domain", "none"],
        default=None,
        help="Select logging mode: 'all'=verbose, 'app'=application only, 'domain'=domain only, 'none'=minimal"
    )

    return parser.parse_args(argv)


def apply_log_mode(log_config, log_mode, verbose):
    """Adjust the logging section for the --log-mode and --verbose flags."""
    log_config = dict(log_config)
    loggers = dict(log_config.get("loggers") or {})

    if log_mode == "all":
        log_config["level"] = "DEBUG"
        log_config["console_level"] = "DEBUG"
    elif log_mode == "app":
        # layer switches replace finer per-logger levels
        log_config["level"] = "WARNING"
        log_config["console_level"] = "DEBUG"
        loggers = {
            "domain": {"level": "WARNING"},
            "application": {"level": "DEBUG"},
            "infrastructure": {"level": "WARNING"},
        }
    elif log_mode == "domain":
        log_config["level"] = "WARNING"
        log_config["console_level"] = "DEBUG"
        loggers = {
            "domain": {"level": "DEBUG"},
            "application": {"level": "WARNING"},
            "infrastructure": {"level": "WARNING"},
        }
    elif log_mode == "none":
        log_config["level"] = "WARNING"
        log_config["console_level"] = "WARNING"
        loggers = {}

    if verbose:
        log_config["level"] = "DEBUG"
        log_config["console_level"] = "DEBUG"

    log_config["loggers"] = loggers
    return log_config


def run_rtp(factory, config, args):
    rtp_config = config.get("rtp", {})
    seed = args.seed if args.seed is not None else rtp_config.get("seed")
    spins = args.spins or rtp_config.get("spins", 100000)
    bet = rtp_config.get("bet", 1.0)

    game_config = factory.load_game_config(args.paytable)
    evaluator = factory.create_evaluator(game_config, seed)
    report = evaluator.simulate_rtp_report(spins, bet)

    settings = game_config.settings
    within = report.within_target(settings.target_rtp, settings.rtp_tolerance)
    if args.json:
        print(json.dumps(dict(report.to_dict(), within_target=within), indent=2))
    else:
        low, high = report.confidence_95
        print("\nRTP Simulation:")
        print(f"- Spins: {report.spins} at bet {report.bet} (seed {report.seed})")
        print(f"- RTP: {report.rtp:.3f}% (95% CI {low:.2f}% - {high:.2f}%)")
        print(f"- Hit frequency: {report.hit_frequency:.2%}")
        print(f"- Max win: {report.max_win:.2f}")
        print(f"- Target: {settings.target_rtp}% +/- {settings.rtp_tolerance} -> {'PASS' if within else 'FAIL'}")
    return 0 if within else 2


def run_study(factory, config, args):
    study_config = config.get("rtp_study", {})
    seeds = [args.seed] if args.seed is not None else study_config.get("seeds", ["study-1"])
    spins = args.spins or study_config.get("spins_per_seed", 25000)
    bet = study_config.get("bet", 1.0)
    mode = ExecutionMode.from_name(study_config.get("execution_mode", "sequential"))

    game_config = factory.load_game_config(args.paytable)
    study = RTPStudy(game_config, TaskExecutor(mode, study_config.get("max_workers")))
    result = study.run(seeds, spins, bet)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print("\nRTP Study:")
        for report in result.per_seed:
            print(f"- {report.seed}: {report.rtp:.3f}% over {report.spins} spins")
        low, high = result.pooled.confidence_95
        print(f"- Pooled: {result.pooled.rtp:.3f}% (95% CI {low:.2f}% - {high:.2f}%)")
        print(f"- Target: {result.target_rtp}% +/- {result.rtp_tolerance} -> "
              f"{'PASS' if result.within_target else 'FAIL'}")
    return 0 if result.within_target else 2


def run_play(factory, config, args):
    engine_settings = dict(config.get("engine", {}))
    if args.seed is not None:
        engine_settings["seed"] = args.seed
    if args.preset is not None:
        engine_settings["volatility_preset"] = args.preset

    engine = factory.create_engine_from_files(args.paytable, args.volatility, engine_settings)
    start_balance = engine.get_state_data().balance
    results = engine.start_auto_spin(AutoSpinSettings(count=args.spins or 100))

    # finish a free-spin round left open by the last paid spin
    while engine.can_spin() and engine.get_state_data().is_in_free_spins:
        results.append(engine.spin())

    data = engine.get_state_data()
    total_won = sum(r.total_win for r in results)
    if args.json:
        print(json.dumps({
            "spins": len(results),
            "start_balance": start_balance,
            "balance": data.balance,
            "total_won": total_won,
            "free_spins": sum(1 for r in results if r.is_free_spin),
            "state": engine.get_game_state().value,
        }, indent=2))
    else:
        print("\nSession Summary:")
        print(f"- Spins: {len(results)} ({sum(1 for r in results if r.is_free_spin)} free)")
        print(f"- Balance: {start_balance:.2f} -> {data.balance:.2f}")
        print(f"- Total won: {total_won:.2f}")
        print(f"- Biggest spin: {max((r.total_win for r in results), default=0.0):.2f}")
        print(f"- Final state: {engine.get_game_state().value}")
    return 0


def main(argv=None):
    """Main entry point for the tumble engine command line."""
    args = parse_arguments(argv)
    start_time = time.time()

    config_loader = YamlConfigLoader(SchemaValidator())

    try:
        config = config_loader.load_file(args.config)
    except ConfigError as e:
        print(f"Error loading configuration: {str(e)}")
        return 1

    initialize_logging(apply_log_mode(config.get("logging", {}), args.log_mode, args.verbose))
    logger = logging.getLogger("application.main")
    logger.info(f"Tumble engine starting in {args.mode} mode")

    factory = EngineFactory(config_loader)
    runners = {"rtp": run_rtp, "study": run_study, "play": run_play}

    try:
        exit_code = runners[args.mode](factory, config, args)
        print(f"\nTotal execution time: {time.time() - start_time:.2f} seconds")
        return exit_code
    except ConfigError as e:
        logger.error(f"Configuration error: {str(e)}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    finally:
        logging.shutdown()


if __name__ == "__main__":
    sys.exit(main())
