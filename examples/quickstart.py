"""
predint Quickstart Example
==========================

This example demonstrates the complete predint workflow:
1. Prepare (features, outcome) data
2. Fit a pipeline with split conformal, CV+ and CQR intervals
3. Make predictions with intervals
4. Evaluate coverage on test data

NOTE: This example uses synthetic data for demonstration.
Replace with your own data in production.
"""

import numpy as np
import pandas as pd

from predint import Pipeline
from predint.models import LinearQuantileFitter

print("="*70)
print("predint Quickstart Example")
print("="*70)

# ===== 1. Prepare Data =====
print("\n[Step 1] Generating synthetic data...")
print("(In production, load your own CSV file here)\n")

rng = np.random.default_rng(42)


def generate_data(n):
    """Noise grows with x: y = 1 + x/2 + N(0, (0.1 + 0.3x)^2)."""
    x = rng.uniform(0, 5, size=n)
    z = rng.normal(size=n)  # irrelevant feature
    y = 1 + x / 2 + rng.normal(size=n) * (0.1 + 0.3 * x)
    return pd.DataFrame({'x': x, 'z': z, 'y': y})


train_df = generate_data(1000)
test_df = generate_data(2000)
print(f"Training records: {len(train_df)}")
print(f"Test records:     {len(test_df)}")


# ===== 2. Fit Pipelines =====
print("\n" + "="*70)
print("[Step 2] Fitting pipelines")
print("="*70)

pipelines = {
    'split': Pipeline(method='split', alpha=0.10),
    'cv+': Pipeline(method='cv+', alpha=0.10, n_folds=10, n_jobs=4),
    'cqr': Pipeline(method='cqr', estimator=LinearQuantileFitter(),
                    alpha=0.10, extra_alphas=(0.20,)),
}

for pipeline in pipelines.values():
    pipeline.fit(train_df, target_col='y')


# ===== 3. Make Predictions =====
print("\n" + "="*70)
print("[Step 3] Prediction intervals for new inputs")
print("="*70 + "\n")

new_inputs = pd.DataFrame({'x': [0.5, 2.5, 4.5], 'z': [0.0, 0.0, 0.0]})

for method, pipeline in pipelines.items():
    print(f"{method}:")
    print(pipeline.predict(new_inputs).round(3).to_string())
    print()

print("CQR at 80% (served by the extra calibration):")
print(pipelines['cqr'].predict(new_inputs, level=0.80).round(3).to_string())


# ===== 4. Evaluate on Test Data =====
print("\n" + "="*70)
print("[Step 4] Evaluating on Test Data")
print("="*70 + "\n")

X_test = test_df.drop(columns=['y'])
y_test = test_df['y']

print(f"{'Method':<8} {'Coverage':>10} {'Mean width':>12} {'Std width':>10} {'MAE':>8}")
print("-"*52)
for method, pipeline in pipelines.items():
    metrics = pipeline.evaluate(X_test, y_test)
    print(f"{method:<8} {metrics['coverage']:>10.3f} {metrics['mean_width']:>12.3f} "
          f"{metrics['std_width']:>10.3f} {metrics['mae']:>8.3f}")

print("\nAll three reach ~90% coverage; only CQR adapts its width to the noise.")


# ===== 5. Save Pipeline =====
print("\n" + "="*70)
print("[Step 5] Saving Fitted Pipeline")
print("="*70 + "\n")

pipelines['cqr'].save('predint_pipeline.pkl')
print("\nTo load later:")
print("  from predint import Pipeline")
print("  pipeline = Pipeline.load('predint_pipeline.pkl')")

print("\n" + "="*70)
print("✅ Quickstart Complete!")
print("="*70 + "\n")
