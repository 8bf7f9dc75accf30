import argparse
import logging
import os

from question_pairs.config import (
    cross_validation_config_from_dict, load_config, pipeline_config_from_dict,
)
from question_pairs.data_loader import QuestionPairsLoader
from question_pairs.estimator import PairPipelineEstimator
from question_pairs.tuning import GridSearchCrossValidator

logger = logging.getLogger(__name__)


def run_fit(config, train_df):
    pipeline_config = pipeline_config_from_dict(config.get('pipeline'))
    estimator = PairPipelineEstimator(pipeline_config)
    return estimator.fit(train_df), None


def run_cross_validation(config, train_df):
    pipeline_config = pipeline_config_from_dict(config.get('pipeline'))
    cv_config = cross_validation_config_from_dict(config.get('cross_validation'))
    result = GridSearchCrossValidator(cv_config, base_config=pipeline_config).fit(train_df)
    return result.best_model, result


def run_from_config_main(config):
    output_path = config.get('output_path', './results')
    os.makedirs(output_path, exist_ok=True)

    train_df = QuestionPairsLoader(config['train_data']).load()
    if config['mode'] == 'cross_validate':
        model, result = run_cross_validation(config, train_df)
    else:
        model, result = run_fit(config, train_df)
    print("Training complete.")

    if result is not None:
        matrix_path = os.path.join(output_path, 'cv_scores.csv')
        result.score_matrix.to_csv(matrix_path)
        print(f"Best grid point: {result.best_point.describe()}")
        print(f"Score matrix saved as {matrix_path}")

    if 'test_data' in config:
        test_df = QuestionPairsLoader(config['test_data']).load()
        predictions = model.transform(test_df)
        predictions_path = os.path.join(output_path, 'test_predictions.csv')
        out = test_df.copy()
        out['is_duplicate'] = [float(p[-1]) for p in predictions['p']]
        out['prediction'] = predictions['prediction']
        out.drop(columns=['question1', 'question2']).to_csv(predictions_path, index=False)
        print(f"Test predictions saved as {predictions_path}")

    model_path = os.path.join(output_path, 'trained_pipeline.joblib')
    model.save(model_path)
    print(f"Pipeline saved as {model_path}")
    return model


def main(config_path):
    config = load_config(config_path)
    return run_from_config_main(config)

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", required=True, help="Path to YAML config file")
    args = parser.parse_args()
    main(args.config)
