"""EEGReviewLab - Main Entry Point

Command-line tool for decoding EEG recordings and refining their annotation tables.
"""
from eeg_review_lab.app import main

if __name__ == "__main__":
    main()
